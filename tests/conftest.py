from datetime import datetime, timedelta, timezone

import pytest

from app import create_app
from fakes import ADMIN_EMAIL, ADMIN_PASSWORD, STAFF_EMAIL, STAFF_PASSWORD, FakeSupabase


def iso(dt):
    return dt.isoformat()


def seed_tables(now=None):
    now = now or datetime.now(timezone.utc)
    return {
        'categories': [
            {'id': 1, 'name': 'Women', 'parent_id': None, 'slug': 'women'},
            {'id': 2, 'name': 'Men', 'parent_id': None, 'slug': 'men'},
        ],
        'products': [
            {'id': 1, 'name': 'Canvas Tote', 'description': 'Everyday bag', 'price': 39.0,
             'image_url': 'https://cdn.example.com/tote.png', 'category_id': 1, 'stock': 12,
             'status': 'active'},
            {'id': 2, 'name': 'Leather Belt', 'description': 'Brown belt', 'price': 25.5,
             'image_url': 'https://cdn.example.com/belt.png', 'category_id': 2, 'stock': 4,
             'status': 'active'},
            {'id': 3, 'name': 'Running Shoes', 'description': '', 'price': 89.99,
             'image_url': 'https://cdn.example.com/shoes.png', 'category_id': 2, 'stock': 0,
             'status': 'inactive'},
            {'id': 4, 'name': 'Silk Scarf', 'description': 'Printed', 'price': 45.0,
             'image_url': 'https://cdn.example.com/scarf.png', 'category_id': 1, 'stock': 7,
             'status': 'active'},
            {'id': 5, 'name': 'Wool Hat', 'description': 'Winter hat', 'price': 19.0,
             'image_url': 'https://cdn.example.com/hat.png', 'category_id': None, 'stock': 30,
             'status': 'active'},
            {'id': 6, 'name': 'Ankle Boots', 'description': 'Suede', 'price': 120.0,
             'image_url': 'https://cdn.example.com/boots.png', 'category_id': 1, 'stock': 3,
             'status': 'archived'},
            {'id': 7, 'name': 'Backpack', 'description': 'Laptop backpack', 'price': 65.0,
             'image_url': 'https://cdn.example.com/backpack.png', 'category_id': 2, 'stock': 9,
             'status': 'active'},
        ],
        'inventory': [
            {'id': 1, 'product_id': 1, 'quantity': 12, 'last_updated': None},
        ],
        'orders': [
            {'id': 101, 'customer_name': 'Alice Martin', 'customer_email': 'alice@example.com',
             'phone': '555-0101', 'order_date': iso(now - timedelta(hours=2)),
             'total_amount': 100.0, 'status': 'paid', 'shipping_address': '1 Main St'},
            {'id': 102, 'customer_name': 'Bob Stone', 'customer_email': 'bob@example.com',
             'phone': None, 'order_date': iso(now - timedelta(days=3)),
             'total_amount': 250.0, 'status': 'delivered', 'shipping_address': '2 Oak Ave'},
            {'id': 103, 'customer_name': 'Alice Martin', 'customer_email': 'alice@example.com',
             'phone': '555-0101', 'order_date': iso(now - timedelta(days=45)),
             'total_amount': 50.0, 'status': 'delivered', 'shipping_address': '1 Main St'},
            {'id': 104, 'customer_name': 'Carol White', 'customer_email': 'carol@example.com',
             'phone': None, 'order_date': iso(now - timedelta(days=10)),
             'total_amount': 75.0, 'status': 'pending', 'shipping_address': None},
        ],
        'order_items': [],
        'payments': [
            {'id': 1, 'order_id': 101, 'transaction_id': 'tx-1', 'amount': 100.0,
             'payment_date': iso(now - timedelta(hours=2)), 'status': 'completed',
             'payment_method': 'card', 'currency': 'USD'},
        ],
        'refunds': [],
    }


@pytest.fixture
def backend():
    return FakeSupabase(seed_tables(), users={ADMIN_EMAIL: ADMIN_PASSWORD, STAFF_EMAIL: STAFF_PASSWORD})


@pytest.fixture
def app(backend):
    app = create_app(
        supabase_client=backend,
        TESTING=True,
        SECRET_KEY='test-secret',
        WTF_CSRF_ENABLED=False,
        AUTH_INITIAL_DELAY=0,
        VERIFY_IMAGE_URLS=False,
    )
    app.extensions['supabase_auth_helper'].sleep = lambda seconds: None
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_client(client):
    response = client.post('/auth/login', data={'email': ADMIN_EMAIL, 'password': ADMIN_PASSWORD})
    assert response.status_code == 302
    return client


@pytest.fixture
def app_ctx(app):
    with app.test_request_context():
        yield app
