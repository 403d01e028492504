from flask import Blueprint, render_template, request, redirect, url_for, flash, jsonify, send_file
from flask_login import login_required
import pandas as pd
from forms.customer_forms import EmailForm
from models.customer import get_customers_from_orders, search_customers, send_customer_email
from models.report import dataframe_to_excel
from routes.products import wants_json

customers_bp = Blueprint('customers', __name__, url_prefix='/customers')

@customers_bp.route('/')
@login_required
def list_customers():
    q = request.args.get('q', '').strip()
    customers = search_customers(get_customers_from_orders(), q)
    return render_template('customers/list.html', title='Customers', customers=customers, q=q)

@customers_bp.route('/email', methods=['GET', 'POST'])
@login_required
def email_customer():
    form = EmailForm()
    if request.method == 'GET':
        form.email.data = request.args.get('email', '')
    if form.validate_on_submit():
        success, message = send_customer_email(form.email.data, form.subject.data, form.message.data)
        if wants_json():
            return jsonify({'success': success, 'message': message}), 200 if success else 500
        flash(message, 'success' if success else 'danger')
        if success:
            return redirect(url_for('customers.list_customers'))
    elif request.method == 'POST' and wants_json():
        return jsonify({'success': False, 'message': 'Invalid email form', 'errors': form.errors}), 400
    return render_template('customers/email.html', title='Email customer', form=form)

@customers_bp.route('/export')
@login_required
def export_customers():
    customers = get_customers_from_orders()
    df = pd.DataFrame([{
        'Name': c.name,
        'Email': c.email,
        'Phone': c.phone,
        'Orders': c.order_count,
        'Total spent': round(c.total_spent, 2),
        'Last order': c.last_order_date.strftime('%Y-%m-%d %H:%M') if c.last_order_date else '',
    } for c in customers], columns=['Name', 'Email', 'Phone', 'Orders', 'Total spent', 'Last order'])
    return send_file(dataframe_to_excel(df, 'Customers'), as_attachment=True,
                     download_name='customers.xlsx',
                     mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
