import os
import re
import uuid

import requests
from flask import current_app
from werkzeug.utils import secure_filename

from models import BACKEND_ERRORS, db

LEGACY_PREFIX = re.compile(r'^/?product-images/')


class StorageError(Exception):
    pass


def _bucket(name=None):
    return db.storage.from_(name or current_app.config.get('STORAGE_BUCKET', 'images'))


def clean_path(path):
    return LEGACY_PREFIX.sub('', path or '')


def upload_product_image(file):
    """Upload a werkzeug ``FileStorage`` to the images bucket and return its public URL."""
    filename = secure_filename(file.filename or '')
    ext = os.path.splitext(filename)[1].lstrip('.').lower() or 'bin'
    path = f'{uuid.uuid4()}.{ext}'
    bucket = current_app.config.get('STORAGE_BUCKET', 'images')

    current_app.logger.info('Uploading file to %s/%s', bucket, path)
    try:
        _bucket(bucket).upload(path, file.read(), {
            'content-type': file.mimetype or 'application/octet-stream',
            'cache-control': '3600',
            'upsert': 'false',
        })
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error uploading file: %s', e)
        raise StorageError('Failed to upload image') from e

    public_url = _bucket(bucket).get_public_url(path)
    current_app.logger.info('File uploaded successfully. Public URL: %s', public_url)

    if current_app.config.get('VERIFY_IMAGE_URLS'):
        ok, status = check_url(public_url)
        if not ok:
            current_app.logger.error('Uploaded image URL not accessible: %s, status: %s',
                                     public_url, status)
    return public_url


def get_image_public_url(path):
    return _bucket().get_public_url(clean_path(path))


def check_image_exists(path):
    clean = clean_path(path)
    try:
        _bucket().download(clean)
    except BACKEND_ERRORS as e:
        current_app.logger.error('Image does not exist or is not accessible: %s (%s)', clean, e)
        return False
    return True


def list_buckets():
    buckets = db.storage.list_buckets()
    return [getattr(bucket, 'name', None) or getattr(bucket, 'id', None) for bucket in buckets]


def list_files(bucket):
    return [item.get('name') for item in _bucket(bucket).list() or [] if item.get('name')]


def check_url(url):
    """HEAD a public URL. Returns ``(ok, status or error message)``."""
    try:
        response = requests.head(url, timeout=5, allow_redirects=True)
    except requests.RequestException as e:
        current_app.logger.error('Error verifying URL %s: %s', url, e)
        return False, str(e)
    return response.ok, response.status_code
