from flask import Blueprint, jsonify, request, redirect, url_for, current_app
from models import BACKEND_ERRORS, db
from models.category import CategorySetupError, setup_default_categories
from routes.auth import api_login_required

api_bp = Blueprint('api', __name__, url_prefix='/api')

@api_bp.route('/update-product', methods=['POST'])
@api_login_required
def update_product_form():
    product_id = request.form.get('id', '').strip()
    name = request.form.get('name', '').strip()
    description = request.form.get('description')
    price_text = request.form.get('price', '').strip()

    if not product_id or not name or not price_text:
        return jsonify({'error': 'Missing required fields'}), 400
    try:
        price = float(price_text)
    except ValueError:
        return jsonify({'error': 'Invalid price format'}), 400

    current_app.logger.info('Updating product %s: name=%s price=%s', product_id, name, price)
    try:
        db.table('products').update({
            'name': name,
            'description': description,
            'price': price,
        }).eq('id', product_id).execute()
    except BACKEND_ERRORS as e:
        current_app.logger.error('Backend error updating product %s: %s', product_id, e)
        return jsonify({'error': getattr(e, 'message', None) or str(e)}), 500
    return redirect(url_for('products.list_products'))

@api_bp.route('/setup/categories')
@api_login_required
def setup_categories():
    try:
        return jsonify(setup_default_categories())
    except CategorySetupError as e:
        return jsonify({'error': e.message, 'details': e.details}), 500
