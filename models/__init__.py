import httpx
from flask import current_app, g, has_request_context, session
from supabase import AuthError, ClientOptions, PostgrestAPIError, StorageException, create_client

# exceptions a failed Supabase call can raise, transport failures included
BACKEND_ERRORS = (PostgrestAPIError, AuthError, StorageException, httpx.HTTPError)

SESSION_KEY = 'supabase_session'


def error_message(error):
    return getattr(error, 'message', None) or str(error)


class Supabase:
    """Flask extension handing out one Supabase client per request.

    Clients never persist or auto-refresh an auth session, so a sign-in
    on one request cannot leak into another user's calls. Table calls
    carry the signed-in user's access token.
    """

    def __init__(self, app=None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app, client=None):
        from .auth_helper import SupabaseAuthHelper

        if client is None:
            url = app.config.get('SUPABASE_URL')
            key = app.config.get('SUPABASE_KEY')
            if not url or not key:
                app.logger.error('Missing Supabase environment variables')
                raise RuntimeError('Missing required environment variables for Supabase')

            def factory():
                return create_client(url, key, options=ClientOptions(
                    persist_session=False,
                    auto_refresh_token=False,
                ))
        else:
            def factory():
                return client

        app.extensions['supabase'] = factory
        app.extensions['supabase_auth_helper'] = SupabaseAuthHelper(
            lambda: self.auth,
            max_retries=app.config.get('AUTH_MAX_RETRIES', 2),
            session_check_interval=app.config.get('AUTH_SESSION_CHECK_INTERVAL', 30),
            initial_delay=app.config.get('AUTH_INITIAL_DELAY', 0.5),
            backoff_base=app.config.get('AUTH_BACKOFF_BASE', 2.0),
            backoff_max=app.config.get('AUTH_BACKOFF_MAX', 15.0),
            refresh_margin=app.config.get('AUTH_REFRESH_MARGIN', 60),
            logger=app.logger,
        )

    @property
    def client(self):
        if 'supabase_client' not in g:
            g.supabase_client = current_app.extensions['supabase']()
            if has_request_context():
                self.bind_session(session.get(SESSION_KEY))
        return g.supabase_client

    def bind_session(self, stored):
        """Run this request's table calls as the user owning ``stored``."""
        token = (stored or {}).get('access_token')
        if token:
            self.client.postgrest.auth(token)

    @property
    def auth(self):
        return self.client.auth

    @property
    def storage(self):
        return self.client.storage

    @property
    def auth_helper(self):
        return current_app.extensions['supabase_auth_helper']

    def table(self, name):
        return self.client.table(name)

    def rpc(self, name, params=None):
        return self.client.rpc(name, params or {})


db = Supabase()

from .user import User
from .category import Category
from .product import Product
from .inventory import Inventory
from .order import Order, OrderItem
from .payment import Payment, PaymentStatus, Refund, ShippingInformation
from .customer import Customer
