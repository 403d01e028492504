from flask import Blueprint, render_template, redirect, url_for, flash, request, jsonify, abort, send_file, current_app
from flask_login import login_required
import pandas as pd
from forms.order_forms import OrderStatusForm
from models.order import (OrderStatusError, get_orders, get_all_orders, get_order,
                          get_valid_statuses, filter_orders, update_order_status)
from models import error_message
from models.payment import get_order_payments, get_order_refunds
from models.report import dataframe_to_excel
from models.user import run_authenticated
from routes.auth import safe_next
from routes.products import WRITE_ERRORS, wants_json

orders_bp = Blueprint('orders', __name__, url_prefix='/orders')

@orders_bp.route('/')
@login_required
def list_orders():
    page = max(request.args.get('page', 1, type=int) or 1, 1)
    selected = request.args.getlist('status')
    q = request.args.get('q', '').strip()
    orders = get_orders(page)
    statuses = get_valid_statuses()
    return render_template('orders/list.html', title='Orders',
                           orders=filter_orders(orders, selected, q),
                           statuses=statuses, selected=selected, q=q, page=page,
                           has_next=len(orders) == current_app.config.get('ORDERS_PER_PAGE', 10))

@orders_bp.route('/<int:order_id>')
@login_required
def order_detail(order_id):
    order = get_order(order_id)
    if order is None:
        abort(404)
    form = OrderStatusForm(status=order.status)
    form.status.choices = [(s, s.capitalize()) for s in get_valid_statuses()]
    return render_template('orders/detail.html', title=f'Order #{order.id}', order=order, form=form,
                           payments=get_order_payments(order_id),
                           refunds=get_order_refunds(order_id))

@orders_bp.route('/<int:order_id>/status', methods=['POST'])
@login_required
def change_status(order_id):
    payload = request.get_json(silent=True) if request.is_json else request.form
    status = ((payload or {}).get('status') or '').strip()
    try:
        rows = run_authenticated(lambda: update_order_status(order_id, status), 'update order status')
    except (OrderStatusError,) + WRITE_ERRORS as e:
        if wants_json():
            return jsonify({'success': False, 'error': error_message(e)}), 400
        flash(error_message(e), 'danger')
    else:
        if wants_json():
            return jsonify({'success': True, 'data': rows})
        flash(f'Order #{order_id} marked as {status}', 'success')
    return redirect(safe_next(request.form.get('next')) or url_for('orders.order_detail', order_id=order_id))

@orders_bp.route('/export')
@login_required
def export_orders():
    orders = get_all_orders()
    df = pd.DataFrame([{
        'Order': o.id,
        'Customer': o.customer_name,
        'Email': o.customer_email,
        'Phone': o.phone,
        'Date': o.order_date.strftime('%Y-%m-%d %H:%M') if o.order_date else '',
        'Status': o.status,
        'Total': o.total_amount,
        'Shipping address': o.shipping_address,
    } for o in orders], columns=['Order', 'Customer', 'Email', 'Phone', 'Date', 'Status', 'Total', 'Shipping address'])
    return send_file(dataframe_to_excel(df, 'Orders'), as_attachment=True,
                     download_name='orders.xlsx',
                     mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
