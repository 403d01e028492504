from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from flask import current_app

from models import BACKEND_ERRORS, db
from models.order import parse_timestamp

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


# Customers are not stored; they are derived from the orders table
@dataclass
class Customer:
    name: str
    email: str
    phone: Optional[str] = None
    order_count: int = 0
    total_spent: float = 0.0
    last_order_date: Optional[datetime] = None


def _amount(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def get_customers_from_orders():
    """Unique customers by email, most recent order first."""
    try:
        response = (
            db.table('orders')
            .select('customer_name, customer_email, phone, order_date, id, status, total_amount')
            .execute()
        )
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error fetching orders: %s', e)
        return []

    customers = {}
    for order in response.data or []:
        email = order.get('customer_email')
        if not email:
            continue

        order_date = parse_timestamp(order.get('order_date'))
        customer = customers.get(email)
        if customer is None:
            customers[email] = Customer(
                name=order.get('customer_name') or 'Unknown',
                email=email,
                phone=order.get('phone'),
                order_count=1,
                total_spent=_amount(order.get('total_amount')),
                last_order_date=order_date,
            )
            continue

        customer.order_count += 1
        customer.total_spent += _amount(order.get('total_amount'))
        if order_date and (customer.last_order_date is None or order_date > customer.last_order_date):
            customer.last_order_date = order_date

    # missing dates sort last
    return sorted(
        customers.values(),
        key=lambda c: (c.last_order_date is not None, c.last_order_date or _OLDEST),
        reverse=True,
    )


def search_customers(customers, term):
    term = (term or '').strip().lower()
    if not term:
        return customers
    return [c for c in customers if term in c.name.lower() or term in c.email.lower()]


def send_customer_email(email, subject, message):
    """Record an email to a customer. No mail service is wired in."""
    if not email:
        current_app.logger.error('Error sending email: no recipient')
        return False, 'Failed to send email: no recipient'
    current_app.logger.info('Sending email to %s', email)
    current_app.logger.info('Subject: %s', subject)
    current_app.logger.info('Message: %s', message)
    return True, f'Email sent to {email} successfully!'
