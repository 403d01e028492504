import io
import math
from datetime import datetime, timedelta, timezone

import pandas as pd
from flask import current_app
from flask_babel import format_date

from models import BACKEND_ERRORS, db
from models.order import parse_timestamp

MONTHS = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
          'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']
SALES_STATUSES = ['paid', 'delivered', 'shipped']
ACTIVE_USER_WINDOW = timedelta(days=30)


def _sum_amounts(rows):
    return sum(float(row.get('total_amount') or 0) for row in rows)


def _total_for_status(status):
    try:
        response = db.table('orders').select('total_amount').eq('status', status).execute()
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error fetching %s order totals: %s', status, e)
        return 0
    return _sum_amounts(response.data or [])


def get_total_revenue():
    """Sum of delivered orders."""
    return _total_for_status('delivered')


def get_sales_total():
    """Sum of paid orders."""
    return _total_for_status('paid')


def get_active_users(now=None):
    """Distinct customers with an order in the last 30 days."""
    now = now or datetime.now(timezone.utc)
    since = (now - ACTIVE_USER_WINDOW).isoformat()
    try:
        response = db.table('orders').select('customer_email').gte('order_date', since).execute()
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error fetching active users: %s', e)
        return 0
    return len({row.get('customer_email') for row in response.data or [] if row.get('customer_email')})


def paid_ratio(sales_total, total_revenue):
    if not total_revenue:
        return 0
    return _round_half_up(sales_total / total_revenue * 100)


def _round_half_up(value):
    return int(math.floor(value + 0.5))


def relative_time(date, now=None):
    now = now or datetime.now(timezone.utc)
    diff_sec = _round_half_up((now - date).total_seconds())
    diff_min = _round_half_up(diff_sec / 60)
    diff_hr = _round_half_up(diff_min / 60)
    diff_days = _round_half_up(diff_hr / 24)

    if diff_sec < 60:
        return f'{diff_sec} seconds ago'
    if diff_min < 60:
        return f'{diff_min} minutes ago'
    if diff_hr < 24:
        return f'{diff_hr} hours ago'
    if diff_days == 1:
        return '1 day ago'
    if diff_days < 30:
        return f'{diff_days} days ago'
    return format_date(date)


def get_recent_activities(limit=5, now=None):
    try:
        response = (
            db.table('orders')
            .select('id, customer_name, total_amount, order_date, status')
            .order('order_date', desc=True)
            .limit(limit)
            .execute()
        )
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error fetching recent orders: %s', e)
        return []

    activities = []
    for order in response.data or []:
        status = order.get('status')
        suffix = '(paid)' if status == 'paid' else '(delivered)' if status == 'delivered' else ''
        date = parse_timestamp(order.get('order_date'))
        activities.append({
            'id': f"order-{order.get('id')}",
            'action': f'New order {suffix}'.strip(),
            'order_id': f"#{order.get('id')}",
            'customer': order.get('customer_name'),
            'amount': float(order.get('total_amount') or 0),
            'date': date.isoformat() if date else None,
            'time': relative_time(date, now) if date else '',
        })
    return activities


def get_monthly_sales_data(year=None):
    """Totals per month of the year for paid, delivered and shipped orders."""
    year = year or datetime.now(timezone.utc).year
    sales = [{'name': name, 'total': 0.0} for name in MONTHS]
    try:
        response = (
            db.table('orders')
            .select('total_amount, order_date')
            .gte('order_date', f'{year}-01-01')
            .lt('order_date', f'{year + 1}-01-01')
            .in_('status', SALES_STATUSES)
            .execute()
        )
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error fetching monthly sales data: %s', e)
        return sales

    rows = response.data or []
    if not rows:
        return sales

    df = pd.DataFrame(rows)
    df['order_date'] = pd.to_datetime(df['order_date'], errors='coerce', utc=True, format='ISO8601')
    df['total_amount'] = pd.to_numeric(df['total_amount'], errors='coerce').fillna(0)
    df = df.dropna(subset=['order_date'])
    totals = df.groupby(df['order_date'].dt.month)['total_amount'].sum()
    for month, total in totals.items():
        sales[int(month) - 1]['total'] = float(total)
    return sales


def dataframe_to_excel(df, sheet_name):
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='xlsxwriter') as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
        header_format = writer.book.add_format({
            'bold': True,
            'fg_color': '#D7E4BC',
            'border': 1,
            'align': 'center',
        })
        worksheet = writer.sheets[sheet_name]
        for col_num, value in enumerate(df.columns):
            worksheet.write(0, col_num, value, header_format)
            worksheet.set_column(col_num, col_num, 18)
    output.seek(0)
    return output
