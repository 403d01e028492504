import math
from dataclasses import dataclass, field
from typing import Optional

from flask import current_app

from models import BACKEND_ERRORS, db

PRODUCT_STATUSES = ('active', 'inactive', 'archived')
TEXT_FIELDS = ('name', 'description', 'image_url')


class ProductError(ValueError):
    pass


class ProductNotFound(ProductError):
    pass


@dataclass
class Product:
    id: int
    name: str
    description: str = ''
    price: float = 0.0
    image_url: str = ''
    category_id: Optional[int] = None
    stock: int = 0
    status: str = 'active'
    inventory: list = field(default_factory=list)
    category: Optional[dict] = None

    @classmethod
    def from_row(cls, row):
        inventory = row.get('inventory') or []
        if isinstance(inventory, dict):
            inventory = [inventory]
        return cls(
            id=row.get('id'),
            name=row.get('name') or '',
            description=row.get('description') or '',
            price=float(row.get('price') or 0),
            image_url=row.get('image_url') or '',
            category_id=row.get('category_id'),
            stock=int(row.get('stock') or 0),
            status=row.get('status') or 'active',
            inventory=inventory,
            category=row.get('categories'),
        )

    @property
    def inventory_quantity(self):
        if not self.inventory:
            return None
        return sum(int(item.get('quantity') or 0) for item in self.inventory)


def parse_id(value, label='product ID'):
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ProductError(f'Invalid {label}: {value}')


def get_products(search='', offset=0, status=None):
    """One page of products ordered by name.

    Returns ``(products, new_offset, total)``; ``new_offset`` is None on
    the last page.
    """
    page_size = current_app.config.get('PRODUCTS_PER_PAGE', 5)
    query = db.table('products').select('*, inventory(*)', count='exact')
    if search:
        query = query.ilike('name', f'%{search}%')
    if status:
        query = query.eq('status', status)

    try:
        response = query.order('name').range(offset, offset + page_size - 1).execute()
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error fetching products: %s', e)
        raise

    rows = response.data or []
    products = [Product.from_row(row) for row in rows]
    new_offset = offset + page_size if len(rows) == page_size else None
    return products, new_offset, response.count or 0


def get_all_products():
    try:
        response = db.table('products').select('*').order('name').execute()
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error fetching products: %s', e)
        raise
    return [Product.from_row(row) for row in response.data or []]


def get_product_by_id(product_id):
    try:
        response = (
            db.table('products')
            .select('*, inventory(*), categories(*)')
            .eq('id', product_id)
            .limit(1)
            .execute()
        )
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error fetching product %s: %s', product_id, e)
        raise
    rows = response.data or []
    return Product.from_row(rows[0]) if rows else None


def create_product(fields):
    try:
        response = db.table('products').insert(fields).execute()
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error creating product: %s', e)
        raise
    current_app.logger.info('Created product %s', fields.get('name'))
    rows = response.data or []
    return Product.from_row(rows[0]) if rows else None


def format_updates(updates):
    formatted = {}
    for name in TEXT_FIELDS:
        if updates.get(name) is not None:
            formatted[name] = str(updates[name])

    if updates.get('category_id') is not None:
        try:
            formatted['category_id'] = int(updates['category_id'])
        except (TypeError, ValueError):
            raise ProductError('Invalid category_id value')

    if updates.get('price') is not None:
        try:
            formatted['price'] = float(updates['price'])
        except (TypeError, ValueError):
            raise ProductError('Invalid price value')

    if updates.get('stock') is not None:
        try:
            formatted['stock'] = int(updates['stock'])
        except (TypeError, ValueError):
            raise ProductError('Invalid stock value')

    if updates.get('status') is not None:
        if updates['status'] not in PRODUCT_STATUSES:
            raise ProductError(f"Invalid status value: {updates['status']}")
        formatted['status'] = updates['status']
    return formatted


def update_product(product_id, updates):
    numeric_id = parse_id(product_id)
    if not updates:
        current_app.logger.warning('No updates provided for product update')
        raise ProductError('No fields to update were provided')

    formatted = format_updates(updates)
    current_app.logger.info('Updating product %s with %s', numeric_id, formatted)

    existing = db.table('products').select('id').eq('id', numeric_id).limit(1).execute()
    if not existing.data:
        raise ProductNotFound(f'Product with ID {numeric_id} does not exist')

    response = db.table('products').update(formatted).eq('id', numeric_id).execute()
    if response.data:
        return Product.from_row(response.data[0])

    current_app.logger.warning('Update of product %s returned no data', numeric_id)
    refetched = db.table('products').select('*').eq('id', numeric_id).limit(1).execute()
    if refetched.data:
        return Product.from_row(refetched.data[0])
    return Product.from_row(dict(formatted, id=numeric_id))


def update_product_price(product_id, price):
    numeric_id = parse_id(product_id)
    try:
        price = float(price)
    except (TypeError, ValueError):
        raise ProductError(f'Invalid price: {price}')
    if math.isnan(price) or price < 0:
        raise ProductError(f'Invalid price: {price}')

    response = (
        db.table('products')
        .update({'price': price})
        .eq('id', numeric_id)
        .execute()
    )
    return [{'id': row.get('id'), 'price': row.get('price')} for row in response.data or []]


def delete_product(product_id):
    if product_id in (None, ''):
        raise ProductError('Product ID is required')
    try:
        db.table('products').delete().eq('id', parse_id(product_id)).execute()
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error deleting product %s: %s', product_id, e)
        raise
    current_app.logger.info('Deleted product %s', product_id)
