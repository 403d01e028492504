from dataclasses import dataclass
from enum import Enum
from typing import Optional

from flask import current_app

from models import BACKEND_ERRORS, db
from models.order import parse_timestamp


class PaymentStatus(str, Enum):
    PENDING = 'pending'
    COMPLETED = 'completed'
    FAILED = 'failed'
    REFUNDED = 'refunded'


@dataclass
class Payment:
    id: int
    order_id: int
    transaction_id: str
    amount: float
    payment_date: object
    status: PaymentStatus
    payment_method: str
    currency: str

    @classmethod
    def from_row(cls, row):
        try:
            status = PaymentStatus(row.get('status'))
        except ValueError:
            status = PaymentStatus.PENDING
        return cls(
            id=row.get('id'),
            order_id=row.get('order_id'),
            transaction_id=row.get('transaction_id') or '',
            amount=float(row.get('amount') or 0),
            payment_date=parse_timestamp(row.get('payment_date')),
            status=status,
            payment_method=row.get('payment_method') or '',
            currency=row.get('currency') or '',
        )


@dataclass
class Refund:
    id: int
    order_id: int
    amount: float
    refund_date: object
    reason: str = ''

    @classmethod
    def from_row(cls, row):
        return cls(
            id=row.get('id'),
            order_id=row.get('order_id'),
            amount=float(row.get('amount') or 0),
            refund_date=parse_timestamp(row.get('refund_date')),
            reason=row.get('reason') or '',
        )


@dataclass
class ShippingInformation:
    id: int
    user_id: str
    address: str
    city: str
    country: str
    postal_code: str
    phone_number: Optional[str] = None


def _rows_for_order(table, order_id):
    try:
        response = db.table(table).select('*').eq('order_id', order_id).execute()
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error fetching %s for order %s: %s', table, order_id, e)
        return []
    return response.data or []


def get_order_payments(order_id):
    return [Payment.from_row(row) for row in _rows_for_order('payments', order_id)]


def get_order_refunds(order_id):
    return [Refund.from_row(row) for row in _rows_for_order('refunds', order_id)]
