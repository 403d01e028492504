import logging
import threading
import time

from models import BACKEND_ERRORS


class AuthHelperError(Exception):
    pass


class SessionMissing(AuthHelperError):
    pass


class RetriesExhausted(AuthHelperError):
    pass


# statuses execute_with_retry handles itself
RETRYABLE_STATUSES = (400, 401, 429)


def get_backoff_delay(retry_count, base=2.0, maximum=15.0):
    return min(base * (2 ** retry_count), maximum)


def error_status(error):
    """HTTP-ish status of a backend error, or None when it has none."""
    status = getattr(error, 'status', None)
    if status is not None:
        try:
            return int(status)
        except (TypeError, ValueError):
            return None
    code = str(getattr(error, 'code', '') or '')
    if code == 'PGRST301':
        # PostgREST: JWT expired
        return 401
    if len(code) == 3 and code.isdigit():
        return int(code)
    return None


def session_from_auth(auth_session):
    """Flatten a Supabase auth session into a dict safe to keep in the Flask session."""
    expires_at = getattr(auth_session, 'expires_at', None)
    if expires_at is None and getattr(auth_session, 'expires_in', None):
        expires_at = int(time.time()) + int(auth_session.expires_in)
    user = getattr(auth_session, 'user', None)
    return {
        'access_token': auth_session.access_token,
        'refresh_token': auth_session.refresh_token,
        'expires_at': expires_at,
        'user': {
            'id': str(user.id) if user else None,
            'email': getattr(user, 'email', None),
        },
    }


class SupabaseAuthHelper:
    """Session lookups against Supabase auth with a short-lived cache and bounded retries.

    Sessions are cached per access token for ``session_check_interval``
    seconds. A failed lookup falls back to the cached session when there
    is one. Entries are dropped once their session has expired.

    ``auth_factory`` returns the auth client to call; it is asked again
    for every call so no session state is shared between users.
    """

    def __init__(self, auth_factory, max_retries=2, session_check_interval=30,
                 initial_delay=0.5, backoff_base=2.0, backoff_max=15.0,
                 refresh_margin=60, logger=None, clock=time.time, sleep=time.sleep):
        self.auth_factory = auth_factory
        self.max_retries = max_retries
        self.session_check_interval = session_check_interval
        self.initial_delay = initial_delay
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.refresh_margin = refresh_margin
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock
        self.sleep = sleep
        self._cache = {}
        self._refresh_lock = threading.Lock()

    def remember(self, session):
        now = self.clock()
        self.prune(now)
        self._cache[session['access_token']] = (session, now)

    def prune(self, now=None):
        """Drop cached sessions that have expired."""
        now = self.clock() if now is None else now
        for token, (session, checked_at) in list(self._cache.items()):
            expires_at = session.get('expires_at')
            if expires_at is not None:
                expired = now >= expires_at
            else:
                expired = now - checked_at >= self.session_check_interval
            if expired:
                self._cache.pop(token, None)

    def invalidate(self, stored):
        if stored and stored.get('access_token'):
            self._cache.pop(stored['access_token'], None)

    def get_session(self, stored):
        if not stored or not stored.get('access_token'):
            return None, SessionMissing('No valid session found')

        token = stored['access_token']
        cached = self._cache.get(token)
        if cached and self.clock() - cached[1] < self.session_check_interval:
            return cached[0], None

        try:
            response = self.auth_factory().get_user(token)
        except BACKEND_ERRORS as e:
            self.logger.error('Session error: %s', e)
            if cached:
                return cached[0], None
            return None, e

        if response is None or response.user is None:
            self._cache.pop(token, None)
            return None, None

        session = dict(stored)
        session['user'] = {'id': str(response.user.id), 'email': response.user.email}
        self.remember(session)
        return session, None

    def refresh_session(self, stored):
        if not self._refresh_lock.acquire(blocking=False):
            # another request is refreshing
            self.sleep(2)
            return self.get_session(stored)

        try:
            current, error = self.get_session(stored)
            expires_at = current.get('expires_at') if current else None
            if expires_at and self.clock() < expires_at - self.refresh_margin:
                return current, error

            refresh_token = (stored or {}).get('refresh_token')
            if not refresh_token:
                return None, SessionMissing('No refresh token available')
            try:
                response = self.auth_factory().refresh_session(refresh_token)
            except BACKEND_ERRORS as e:
                self.logger.error('Refresh error: %s', e)
                return None, e

            if response is None or response.session is None:
                return None, SessionMissing('Refresh returned no session')

            self.invalidate(stored)
            session = session_from_auth(response.session)
            self.remember(session)
            return session, None
        finally:
            self._refresh_lock.release()

    def execute_with_retry(self, operation, context, stored, on_refresh=None):
        """Run ``operation`` while the session is valid.

        Rate limited calls (429) back off exponentially; 400/401 trigger a
        session refresh. Anything else propagates.
        """
        self.sleep(self.initial_delay)

        attempt = 0
        while attempt < self.max_retries:
            session, _ = self.get_session(stored)
            if not session:
                raise SessionMissing('No valid session found')

            try:
                return operation()
            except BACKEND_ERRORS as error:
                status = error_status(error)
                if status == 429:
                    delay = get_backoff_delay(attempt, self.backoff_base, self.backoff_max)
                    self.logger.warning('Rate limit hit for %s. Retrying in %.1fs', context, delay)
                    self.sleep(delay)
                    attempt += 1
                    continue

                if status in (400, 401):
                    refreshed, refresh_error = self.refresh_session(stored)
                    if refreshed and not refresh_error:
                        stored = refreshed
                        if on_refresh is not None:
                            on_refresh(refreshed)
                        self.sleep(1)
                        attempt += 1
                        continue

                self.logger.error('Error in %s: %s', context, error)
                raise

        raise RetriesExhausted(f'Max retries ({self.max_retries}) exceeded for {context}')
