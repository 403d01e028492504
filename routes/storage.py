from flask import Blueprint, render_template, request, current_app
from flask_login import login_required
from models import BACKEND_ERRORS
from models.storage import list_buckets, list_files, get_image_public_url, check_url

storage_bp = Blueprint('storage', __name__, url_prefix='/storage-test')

@storage_bp.route('/')
@login_required
def storage_test():
    """Diagnostics for the images bucket: buckets, files and URL reachability."""
    bucket = request.args.get('bucket') or current_app.config.get('STORAGE_BUCKET', 'images')
    url = request.args.get('url', '').strip()
    buckets, files, errors = [], [], []

    try:
        buckets = list_buckets()
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error listing buckets: %s', e)
        errors.append(f'Failed to list buckets: {e}')

    try:
        files = [{'name': name, 'url': get_image_public_url(name)} for name in list_files(bucket)]
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error listing files in %s: %s', bucket, e)
        errors.append(f'Failed to list files in {bucket}: {e}')

    url_check = None
    if url:
        ok, status = check_url(url)
        url_check = {'url': url, 'ok': ok, 'status': status}

    return render_template('storage/test.html', title='Storage test', bucket=bucket,
                           buckets=buckets, files=files, errors=errors, url_check=url_check)
