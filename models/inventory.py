from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from flask import current_app

from models import BACKEND_ERRORS, db


@dataclass
class Inventory:
    id: Optional[int]
    product_id: int
    quantity: int
    last_updated: Optional[str] = None

    @classmethod
    def from_row(cls, row):
        return cls(
            id=row.get('id'),
            product_id=row.get('product_id'),
            quantity=int(row.get('quantity') or 0),
            last_updated=row.get('last_updated'),
        )


def update_inventory(product_id, quantity):
    try:
        db.table('inventory').update({
            'quantity': int(quantity),
            'last_updated': datetime.now(timezone.utc).isoformat(),
        }).eq('product_id', product_id).execute()
    except BACKEND_ERRORS as e:
        current_app.logger.error('Error updating inventory for product %s: %s', product_id, e)
        raise
