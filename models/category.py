from dataclasses import dataclass
from typing import Optional

from flask import current_app

from models import BACKEND_ERRORS, db, error_message

DEFAULT_CATEGORIES = [
    {'id': 1, 'name': 'Women', 'parent_id': None, 'slug': 'women'},
    {'id': 2, 'name': 'Men', 'parent_id': None, 'slug': 'men'},
    {'id': 3, 'name': 'Women Bags', 'parent_id': 1, 'slug': 'women-bags'},
    {'id': 4, 'name': 'Women Shoes', 'parent_id': 1, 'slug': 'women-shoes'},
    {'id': 5, 'name': 'Women Accessories', 'parent_id': 1, 'slug': 'women-accessories'},
    {'id': 6, 'name': 'Men Bags', 'parent_id': 2, 'slug': 'men-bags'},
    {'id': 7, 'name': 'Men Shoes', 'parent_id': 2, 'slug': 'men-shoes'},
    {'id': 8, 'name': 'Men Accessories', 'parent_id': 2, 'slug': 'men-accessories'},
]

# Postgres: relation does not exist
UNDEFINED_TABLE = '42P01'


class CategorySetupError(Exception):
    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


@dataclass
class Category:
    id: int
    name: str
    parent_id: Optional[int] = None
    slug: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        return cls(
            id=row.get('id'),
            name=row.get('name') or '',
            parent_id=row.get('parent_id'),
            slug=row.get('slug'),
        )


def get_categories():
    try:
        response = db.table('categories').select('*').order('name').execute()
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error fetching categories: %s', e)
        raise
    return [Category.from_row(row) for row in response.data or []]


def setup_default_categories():
    """Create the categories table if needed and seed it when empty."""
    try:
        existing = db.table('categories').select('id').execute().data or []
    except BACKEND_ERRORS as e:
        if getattr(e, 'code', None) != UNDEFINED_TABLE:
            current_app.logger.error('Failed to check existing categories: %s', e)
            raise CategorySetupError('Failed to check existing categories', error_message(e)) from e
        try:
            db.rpc('create_categories_table').execute()
        except BACKEND_ERRORS as create_error:
            current_app.logger.error('Failed to create categories table: %s', create_error)
            raise CategorySetupError('Failed to create categories table', error_message(create_error)) from create_error
        existing = []

    if existing:
        return {
            'success': True,
            'message': 'Categories already exist',
            'count': len(existing),
        }

    try:
        db.table('categories').insert(DEFAULT_CATEGORIES).execute()
    except BACKEND_ERRORS as e:
        current_app.logger.error('Failed to create default categories: %s', e)
        raise CategorySetupError('Failed to create default categories', error_message(e)) from e

    current_app.logger.info('Created %d default categories', len(DEFAULT_CATEGORIES))
    return {
        'success': True,
        'message': 'Default categories created successfully',
        'categories': DEFAULT_CATEGORIES,
    }
