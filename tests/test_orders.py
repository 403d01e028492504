import httpx
import pytest

from fakes import api_error
from models.order import (DEFAULT_STATUSES, Order, OrderStatusError, filter_orders, get_order,
                          get_orders, get_valid_statuses, parse_timestamp, update_order_status)

JSON = {'X-Requested-With': 'XMLHttpRequest'}


def order_row(backend, order_id):
    return next(row for row in backend.tables['orders'] if row['id'] == order_id)


def test_parse_timestamp_handles_zulu_and_naive_dates():
    assert parse_timestamp('2025-03-01T10:00:00Z').tzinfo is not None
    assert parse_timestamp('2025-03-01').tzinfo is not None
    assert parse_timestamp('') is None
    assert parse_timestamp('not a date') is None


def test_order_defaults():
    order = Order.from_row({'id': 9, 'status': None, 'order_items': [{'id': 1, 'quantity': '2'}]})
    assert order.status == 'pending'
    assert order.items[0].quantity == 2


class TestStatuses:
    def test_observed_statuses_come_first(self, app_ctx, backend):
        backend.tables['orders'].append({'id': 200, 'status': 'on_hold', 'order_date': None})

        statuses = get_valid_statuses()

        assert statuses[:3] == ['paid', 'delivered', 'pending']
        assert 'on_hold' in statuses
        assert set(DEFAULT_STATUSES) <= set(statuses)
        assert len(statuses) == len(set(statuses))

    def test_defaults_when_table_is_empty(self, app_ctx, backend):
        backend.tables['orders'] = []
        assert get_valid_statuses() == DEFAULT_STATUSES

    def test_defaults_on_error(self, app_ctx, backend):
        backend.fail('orders', 'select', api_error('boom'))
        assert get_valid_statuses() == DEFAULT_STATUSES


class TestQueries:
    def test_orders_newest_first(self, app_ctx):
        assert [o.id for o in get_orders()] == [101, 102, 104, 103]

    def test_paging(self, app, backend):
        app.config['ORDERS_PER_PAGE'] = 3
        with app.test_request_context():
            assert [o.id for o in get_orders(2)] == [103]

    def test_errors_give_empty_list(self, app_ctx, backend):
        backend.fail('orders', 'select', api_error('boom'))
        assert get_orders() == []

    def test_unreachable_backend_gives_empty_list(self, app_ctx, backend):
        backend.fail('orders', 'select', httpx.ConnectError('connection refused'))
        assert get_orders() == []

    def test_get_order(self, app_ctx):
        assert get_order(102).customer_name == 'Bob Stone'
        assert get_order(999) is None

    def test_filter_by_status_and_term(self, app_ctx):
        orders = get_orders()
        assert [o.id for o in filter_orders(orders, ['delivered'])] == [102, 103]
        assert [o.id for o in filter_orders(orders, [], 'alice')] == [101, 103]
        assert [o.id for o in filter_orders(orders, ['paid', 'pending'], '10')] == [101, 104]
        assert filter_orders(orders, None, '') == orders


class TestUpdateStatus:
    def test_updates_status(self, app_ctx, backend):
        rows = update_order_status(104, 'shipped')
        assert rows[0]['status'] == 'shipped'
        assert order_row(backend, 104)['status'] == 'shipped'

    def test_rejects_unknown_status(self, app_ctx, backend):
        with pytest.raises(OrderStatusError, match='Invalid status: lost'):
            update_order_status(104, 'lost')
        assert order_row(backend, 104)['status'] == 'pending'

    def test_check_constraint_message(self, app_ctx, backend):
        backend.fail('orders', 'update',
                     api_error('new row violates check constraint "orders_status_check"', '23514'))

        with pytest.raises(OrderStatusError) as excinfo:
            update_order_status(104, 'failed')

        assert str(excinfo.value) == (
            'Database constraint error: "failed" is not allowed in your database schema. '
            'You may need to update your enum type.'
        )

    def test_other_update_errors(self, app_ctx, backend):
        backend.fail('orders', 'update', api_error('permission denied', '42501'))
        with pytest.raises(OrderStatusError, match='Error updating order status: permission denied'):
            update_order_status(104, 'paid')

    def test_expired_token_is_left_for_the_retry_loop(self, app_ctx, backend):
        error = api_error('JWT expired', 'PGRST301')
        backend.fail('orders', 'update', error)
        with pytest.raises(type(error)) as excinfo:
            update_order_status(104, 'paid')
        assert excinfo.value is error


class TestOrderViews:
    def test_list_filters_by_status(self, auth_client):
        response = auth_client.get('/orders/?status=delivered')

        assert response.status_code == 200
        assert b'Bob Stone' in response.data
        assert b'Carol White' not in response.data

    def test_detail(self, auth_client):
        response = auth_client.get('/orders/101')

        assert response.status_code == 200
        assert b'Alice Martin' in response.data
        assert b'tx-1' in response.data

    def test_detail_missing_order(self, auth_client):
        assert auth_client.get('/orders/999').status_code == 404

    def test_change_status_json(self, auth_client, backend):
        response = auth_client.post('/orders/104/status', json={'status': 'paid'})

        assert response.get_json()['success'] is True
        assert order_row(backend, 104)['status'] == 'paid'

    def test_change_status_invalid_json(self, auth_client, backend):
        response = auth_client.post('/orders/104/status', data={'status': 'lost'}, headers=JSON)

        assert response.status_code == 400
        assert response.get_json() == {'success': False, 'error': 'Invalid status: lost'}

    def test_change_status_retries_after_expired_token(self, auth_client, backend):
        backend.fail('orders', 'update', api_error('JWT expired', 'PGRST301'))

        response = auth_client.post('/orders/104/status', json={'status': 'paid'})

        assert response.status_code == 200
        assert response.get_json()['success'] is True
        assert order_row(backend, 104)['status'] == 'paid'

    def test_change_status_backend_failure_json(self, auth_client, backend):
        backend.fail('orders', 'update', httpx.ConnectError('connection refused'))

        response = auth_client.post('/orders/104/status', json={'status': 'paid'})

        assert response.status_code == 400
        assert response.get_json() == {'success': False, 'error': 'connection refused'}
        assert order_row(backend, 104)['status'] == 'pending'

    def test_change_status_form_redirects_to_next(self, auth_client, backend):
        response = auth_client.post('/orders/104/status',
                                    data={'status': 'shipped', 'next': '/orders/?page=1'})

        assert response.status_code == 302
        assert response.headers['Location'].endswith('/orders/?page=1')
        assert order_row(backend, 104)['status'] == 'shipped'

    def test_export(self, auth_client):
        response = auth_client.get('/orders/export')
        assert response.status_code == 200
        assert response.data[:2] == b'PK'
