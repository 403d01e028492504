from flask import current_app, session
from flask_login import UserMixin

from models import BACKEND_ERRORS, SESSION_KEY, db, error_message


class AuthFailed(Exception):
    pass


# Dashboard user backed by a Supabase auth session
class User(UserMixin):
    def __init__(self, id, email, access_token=None):
        self.id = id
        self.email = email
        self.access_token = access_token

    @classmethod
    def from_session(cls, stored):
        user = stored.get('user') or {}
        return cls(user.get('id'), user.get('email'), stored.get('access_token'))

    @property
    def display_name(self):
        return (self.email or '').split('@')[0] or 'Admin'


def stored_session():
    return session.get(SESSION_KEY)


def store_session(stored):
    session[SESSION_KEY] = stored
    db.bind_session(stored)


def clear_session():
    session.pop(SESSION_KEY, None)


def load_user(user_id):
    """Flask-Login user loader: validate the stored session, refreshing it near expiry."""
    stored = stored_session()
    if not stored or (stored.get('user') or {}).get('id') != user_id:
        return None

    helper = db.auth_helper
    current, error = helper.get_session(stored)
    if current is None:
        if error is not None:
            current_app.logger.warning('Dropping session for %s: %s', user_id, error)
        clear_session()
        return None

    refreshed, error = helper.refresh_session(current)
    if refreshed is not None and error is None:
        current = refreshed
    if current != stored:
        store_session(current)
    return User.from_session(current)


def sign_in(email, password):
    from models.auth_helper import session_from_auth

    try:
        response = db.auth.sign_in_with_password({'email': email, 'password': password})
    except BACKEND_ERRORS as e:
        current_app.logger.error('Sign in failed for %s: %s', email, e)
        raise AuthFailed(error_message(e)) from e

    if response is None or response.session is None:
        raise AuthFailed('Email not confirmed or no session returned')

    stored = session_from_auth(response.session)
    db.auth_helper.remember(stored)
    store_session(stored)
    current_app.logger.info('Signed in %s', email)
    return User.from_session(stored)


def sign_up(email, password):
    try:
        db.auth.sign_up({'email': email, 'password': password})
    except BACKEND_ERRORS as e:
        current_app.logger.error('Sign up failed for %s: %s', email, e)
        raise AuthFailed(error_message(e)) from e
    current_app.logger.info('Signed up %s', email)


def sign_out():
    """Revoke this user's session only; other users keep theirs."""
    stored = stored_session()
    token = (stored or {}).get('access_token')
    if token:
        try:
            db.auth.admin.sign_out(token, 'local')
        except BACKEND_ERRORS as e:
            # the local session is dropped either way
            current_app.logger.warning('Sign out error: %s', e)
    db.auth_helper.invalidate(stored)
    clear_session()


def run_authenticated(operation, context):
    """Run a backend write through the auth helper, keeping a refreshed session."""
    return db.auth_helper.execute_with_retry(
        operation, context, stored_session(), on_refresh=store_session,
    )
