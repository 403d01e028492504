from flask import Blueprint, render_template, redirect, url_for, flash, request, jsonify, abort, send_file, current_app
from flask_login import login_required
import pandas as pd
from forms.product_forms import ProductForm, ProductEditForm, PriceForm
from models import BACKEND_ERRORS
from models.auth_helper import AuthHelperError
from models.category import get_categories
from models.inventory import update_inventory
from models.product import (PRODUCT_STATUSES, ProductError, get_products, get_all_products,
                            get_product_by_id, create_product, update_product,
                            update_product_price, delete_product)
from models.report import dataframe_to_excel
from models.storage import StorageError, upload_product_image
from models.user import run_authenticated

products_bp = Blueprint('products', __name__, url_prefix='/products')

WRITE_ERRORS = BACKEND_ERRORS + (AuthHelperError,)

def wants_json():
    return (request.is_json
            or request.headers.get('X-Requested-With') == 'XMLHttpRequest'
            or request.accept_mimetypes.best == 'application/json')

def category_choices():
    try:
        categories = get_categories()
    except BACKEND_ERRORS:
        # the form still works without categories
        categories = []
    return [(c.id, c.name) for c in categories]

@products_bp.route('/')
@login_required
def list_products():
    q = request.args.get('q', '').strip()
    status = request.args.get('status', '').strip()
    if status not in PRODUCT_STATUSES:
        status = ''
    offset = request.args.get('offset', 0, type=int) or 0
    offset = max(offset, 0)
    products, new_offset, total = [], None, 0
    error = None
    try:
        products, new_offset, total = get_products(q, offset, status or None)
    except BACKEND_ERRORS:
        error = 'Failed to load products. Please try again.'
    page_size = current_app.config.get('PRODUCTS_PER_PAGE', 5)
    prev_offset = offset - page_size if offset > 0 else None
    return render_template('products/list.html', title='Products', products=products,
                           total=total, offset=offset, new_offset=new_offset,
                           prev_offset=max(prev_offset, 0) if prev_offset is not None else None,
                           q=q, status=status, statuses=PRODUCT_STATUSES,
                           error=error)

@products_bp.route('/add', methods=['GET', 'POST'])
@login_required
def add_product():
    form = ProductForm()
    form.category.choices = category_choices()
    if form.validate_on_submit():
        try:
            image_url = upload_product_image(form.image.data)
        except StorageError as e:
            flash(str(e), 'danger')
            return render_template('products/add.html', title='Add product', form=form), 400
        fields = {
            'name': form.name.data.strip(),
            'description': form.description.data.strip(),
            'price': float(form.price.data),
            'category_id': form.category.data,
            'image_url': image_url,
        }
        try:
            run_authenticated(lambda: create_product(fields), 'create product')
        except WRITE_ERRORS as e:
            flash(getattr(e, 'message', None) or 'Failed to create product', 'danger')
        else:
            flash('Product added', 'success')
            return redirect(url_for('products.list_products'))
    return render_template('products/add.html', title='Add product', form=form)

@products_bp.route('/<int:product_id>/edit', methods=['GET', 'POST'])
@login_required
def edit_product(product_id):
    try:
        product = get_product_by_id(product_id)
    except BACKEND_ERRORS:
        flash('Failed to load product. Please try again.', 'danger')
        return redirect(url_for('products.list_products'))
    if product is None:
        abort(404)

    form = ProductEditForm(obj=product)
    choices = category_choices()
    if product.category_id and product.category_id not in [c[0] for c in choices]:
        choices.append((product.category_id, f'Category {product.category_id}'))
    form.category_id.choices = [(0, 'Uncategorized')] + choices
    if request.method == 'GET' and product.category_id is None:
        form.category_id.data = 0

    if form.validate_on_submit():
        updates = {
            'name': form.name.data.strip(),
            'description': form.description.data or '',
            'price': form.price.data,
            'image_url': form.image_url.data.strip(),
            'stock': form.stock.data or 0,
            'status': form.status.data,
        }
        if form.category_id.data:
            updates['category_id'] = form.category_id.data
        try:
            run_authenticated(lambda: update_product(product_id, updates), 'update product')
        except ProductError as e:
            flash(str(e), 'danger')
        except WRITE_ERRORS:
            flash('Failed to update product. Please try again.', 'danger')
        else:
            if product.inventory:
                try:
                    run_authenticated(lambda: update_inventory(product_id, updates['stock']), 'update inventory')
                except WRITE_ERRORS:
                    # the product row is already saved
                    flash('Product updated, but its inventory could not be updated.', 'warning')
                    return redirect(url_for('products.list_products'))
            flash('Product updated', 'success')
            return redirect(url_for('products.list_products'))
    return render_template('products/edit.html', title=f'Edit {product.name}', form=form, product=product)


@products_bp.route('/<int:product_id>/price', methods=['POST'])
@login_required
def update_price(product_id):
    form = PriceForm()
    if not form.validate_on_submit():
        message = 'Invalid price: {}'.format(request.form.get('price', ''))
        if wants_json():
            return jsonify({'success': False, 'error': message}), 400
        flash(message, 'danger')
        return redirect(url_for('products.list_products'))
    try:
        rows = run_authenticated(lambda: update_product_price(product_id, form.price.data), 'update price')
    except ProductError as e:
        rows, error = None, str(e)
    except WRITE_ERRORS:
        rows, error = None, 'Failed to update price'
    if rows is None:
        if wants_json():
            return jsonify({'success': False, 'error': error}), 400
        flash(error, 'danger')
    elif wants_json():
        return jsonify({'success': True, 'data': rows})
    else:
        flash('Price updated', 'success')
    return redirect(url_for('products.list_products'))

@products_bp.route('/<int:product_id>/delete', methods=['POST'])
@login_required
def delete_product_view(product_id):
    target = request.form.get('id') or product_id
    try:
        run_authenticated(lambda: delete_product(target), 'delete product')
    except ProductError as e:
        error = str(e)
    except WRITE_ERRORS as e:
        error = getattr(e, 'message', None) or 'Failed to delete product'
    else:
        error = None

    if wants_json():
        if error:
            return jsonify({'success': False, 'error': error}), 400
        return jsonify({'success': True})
    if error:
        flash(f'Failed to delete product: {error}', 'danger')
    else:
        flash('Product deleted', 'success')
    return redirect(url_for('products.list_products'))

@products_bp.route('/export')
@login_required
def export_products():
    try:
        products = get_all_products()
    except BACKEND_ERRORS:
        flash('Failed to load products. Please try again.', 'danger')
        return redirect(url_for('products.list_products'))
    df = pd.DataFrame([{
        'ID': p.id,
        'Name': p.name,
        'Status': p.status,
        'Price': p.price,
        'Stock': p.stock,
        'Category': p.category_id,
    } for p in products], columns=['ID', 'Name', 'Status', 'Price', 'Stock', 'Category'])
    return send_file(dataframe_to_excel(df, 'Products'), as_attachment=True,
                     download_name='products.xlsx',
                     mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
