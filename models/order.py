from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from flask import current_app

from models import BACKEND_ERRORS, db, error_message
from models.auth_helper import RETRYABLE_STATUSES, error_status

# fallback when the orders table has no status values yet
DEFAULT_STATUSES = ['pending', 'paid', 'failed', 'shipped', 'delivered']

# Postgres check_violation
CHECK_VIOLATION = '23514'


class OrderStatusError(Exception):
    pass


def parse_timestamp(value):
    """Parse a timestamp or date string from the backend into an aware datetime."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class OrderItem:
    id: Optional[int]
    order_id: Optional[int]
    product_id: Optional[int]
    quantity: int = 0

    @classmethod
    def from_row(cls, row):
        return cls(
            id=row.get('id'),
            order_id=row.get('order_id'),
            product_id=row.get('product_id'),
            quantity=int(row.get('quantity') or 0),
        )


@dataclass
class Order:
    id: int
    customer_name: str = ''
    customer_email: str = ''
    phone: Optional[str] = None
    order_date: Optional[datetime] = None
    total_amount: float = 0.0
    status: str = 'pending'
    shipping_address: Optional[str] = None
    items: list = field(default_factory=list)

    @classmethod
    def from_row(cls, row):
        return cls(
            id=row.get('id'),
            customer_name=row.get('customer_name') or '',
            customer_email=row.get('customer_email') or '',
            phone=row.get('phone'),
            order_date=parse_timestamp(row.get('order_date')),
            total_amount=float(row.get('total_amount') or 0),
            status=row.get('status') or 'pending',
            shipping_address=row.get('shipping_address'),
            items=[OrderItem.from_row(item) for item in row.get('order_items') or []],
        )


def get_valid_statuses():
    """Statuses seen in the orders table, followed by any missing defaults."""
    try:
        response = db.table('orders').select('status').not_.is_('status', 'null').execute()
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error fetching status values: %s', e)
        return list(DEFAULT_STATUSES)

    rows = response.data or []
    if not rows:
        return list(DEFAULT_STATUSES)

    statuses = []
    for row in rows:
        status = row.get('status')
        if status and status not in statuses:
            statuses.append(status)
    for status in DEFAULT_STATUSES:
        if status not in statuses:
            statuses.append(status)
    return statuses


def get_orders(page=1):
    per_page = current_app.config.get('ORDERS_PER_PAGE', 10)
    start = (page - 1) * per_page
    try:
        response = (
            db.table('orders')
            .select('*, order_items(*)')
            .order('order_date', desc=True)
            .range(start, start + per_page - 1)
            .execute()
        )
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error fetching orders: %s', e)
        return []
    return [Order.from_row(row) for row in response.data or []]


def get_all_orders():
    try:
        response = db.table('orders').select('*').order('order_date', desc=True).execute()
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error fetching orders: %s', e)
        return []
    return [Order.from_row(row) for row in response.data or []]


def get_order(order_id):
    try:
        response = (
            db.table('orders')
            .select('*, order_items(*)')
            .eq('id', order_id)
            .limit(1)
            .execute()
        )
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error fetching order %s: %s', order_id, e)
        return None
    rows = response.data or []
    return Order.from_row(rows[0]) if rows else None


def filter_orders(orders, statuses=None, term=''):
    """Keep orders in the selected statuses matching the customer name or id."""
    selected = set(statuses or [])
    term = (term or '').strip().lower()
    result = []
    for order in orders:
        if selected and order.status not in selected:
            continue
        if term and term not in order.customer_name.lower() and term not in str(order.id):
            continue
        result.append(order)
    return result


def update_order_status(order_id, status):
    valid_statuses = get_valid_statuses()
    if status not in valid_statuses:
        current_app.logger.error('Invalid status: %s. Valid statuses are: %s',
                                 status, ', '.join(valid_statuses))
        raise OrderStatusError(f'Invalid status: {status}')

    current_app.logger.info('Updating order %s to status %s', order_id, status)
    try:
        response = db.table('orders').update({'status': status}).eq('id', order_id).execute()
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error updating order status: %s', e)
        if error_status(e) in RETRYABLE_STATUSES:
            # left for the session refresh / backoff in execute_with_retry
            raise
        message = error_message(e)
        if getattr(e, 'code', None) == CHECK_VIOLATION or 'violates' in message:
            raise OrderStatusError(
                f'Database constraint error: "{status}" is not allowed in your database '
                f'schema. You may need to update your enum type.'
            ) from e
        raise OrderStatusError(f'Error updating order status: {message}') from e
    return response.data or []
