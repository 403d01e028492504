import httpx
import pytest

from fakes import FakeAuth, api_error, auth_error
from models.auth_helper import (RetriesExhausted, SessionMissing, SupabaseAuthHelper,
                                error_status, get_backoff_delay, session_from_auth)


class Clock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_auth():
    return FakeAuth({'admin@example.com': 'secret123'})


@pytest.fixture
def helper(fake_auth, clock, sleeps):
    return SupabaseAuthHelper(lambda: fake_auth, clock=clock, sleep=sleeps.append, initial_delay=0.5)


def signed_in(fake_auth, clock, expires_in=3600):
    response = fake_auth.sign_in_with_password({'email': 'admin@example.com', 'password': 'secret123'})
    stored = session_from_auth(response.session)
    stored['expires_at'] = clock() + expires_in
    return stored


def test_backoff_delay_doubles_and_caps():
    assert get_backoff_delay(0) == 2.0
    assert get_backoff_delay(1) == 4.0
    assert get_backoff_delay(2) == 8.0
    assert get_backoff_delay(3) == 15.0
    assert get_backoff_delay(10) == 15.0


def test_error_status_from_auth_and_postgrest_errors():
    assert error_status(auth_error('rate limited', 429)) == 429
    assert error_status(api_error('JWT expired', 'PGRST301')) == 401
    assert error_status(api_error('bad request', '400')) == 400
    assert error_status(api_error('relation missing', '42P01')) is None


def test_get_session_without_token():
    helper = SupabaseAuthHelper(lambda: FakeAuth())
    session, error = helper.get_session(None)
    assert session is None
    assert isinstance(error, SessionMissing)


def test_session_cached_within_interval(helper, fake_auth, clock):
    stored = signed_in(fake_auth, clock)

    first, _ = helper.get_session(stored)
    clock.now += 10
    second, _ = helper.get_session(stored)

    assert first == second
    assert fake_auth.get_user_calls == 1

    clock.now += 30
    helper.get_session(stored)
    assert fake_auth.get_user_calls == 2


def test_lookup_failure_falls_back_to_cached_session(helper, fake_auth, clock):
    stored = signed_in(fake_auth, clock)
    cached, _ = helper.get_session(stored)

    clock.now += 60
    fake_auth.fail_get_user = auth_error('network down', 500)
    session, error = helper.get_session(stored)

    assert session == cached
    assert error is None


def test_lookup_failure_without_cache_returns_error(helper, fake_auth, clock):
    stored = signed_in(fake_auth, clock)
    fake_auth.fail_get_user = auth_error('network down', 500)

    session, error = helper.get_session(stored)

    assert session is None
    assert error is fake_auth.fail_get_user


def test_transport_failure_falls_back_to_cached_session(helper, fake_auth, clock):
    stored = signed_in(fake_auth, clock)
    cached, _ = helper.get_session(stored)

    clock.now += 60
    fake_auth.fail_get_user = httpx.ConnectError('connection refused')
    session, error = helper.get_session(stored)

    assert session == cached
    assert error is None


def test_expired_sessions_are_pruned(helper, fake_auth, clock):
    live = signed_in(fake_auth, clock)
    helper.get_session(live)

    for n in range(50):
        helper.remember({'access_token': f'old-{n}', 'expires_at': clock() - 1})
        clock.now += 1

    assert set(helper._cache) == {live['access_token'], 'old-49'}


def test_sessions_without_expiry_age_out(helper, clock):
    helper.remember({'access_token': 'no-expiry'})
    clock.now += 31

    helper.prune()

    assert 'no-expiry' not in helper._cache


def test_refresh_skipped_when_far_from_expiry(helper, fake_auth, clock):
    stored = signed_in(fake_auth, clock, expires_in=3600)

    session, error = helper.refresh_session(stored)

    assert error is None
    assert session['access_token'] == stored['access_token']
    assert fake_auth.refresh_calls == 0


def test_refresh_near_expiry_issues_new_tokens(helper, fake_auth, clock):
    stored = signed_in(fake_auth, clock, expires_in=30)

    session, error = helper.refresh_session(stored)

    assert error is None
    assert fake_auth.refresh_calls == 1
    assert session['access_token'] != stored['access_token']
    assert session['user']['email'] == 'admin@example.com'


def test_refresh_in_progress_waits_and_rereads(helper, fake_auth, clock, sleeps):
    stored = signed_in(fake_auth, clock, expires_in=30)
    helper._refresh_lock.acquire()
    try:
        session, _ = helper.refresh_session(stored)
    finally:
        helper._refresh_lock.release()

    assert sleeps == [2]
    assert fake_auth.refresh_calls == 0
    assert session['access_token'] == stored['access_token']


def test_execute_returns_operation_result(helper, fake_auth, clock, sleeps):
    stored = signed_in(fake_auth, clock)

    assert helper.execute_with_retry(lambda: 'done', 'noop', stored) == 'done'
    assert sleeps == [0.5]


def test_execute_without_session_raises(helper):
    with pytest.raises(SessionMissing):
        helper.execute_with_retry(lambda: 'done', 'noop', None)


def test_rate_limit_backs_off_then_succeeds(helper, fake_auth, clock, sleeps):
    stored = signed_in(fake_auth, clock)
    calls = []

    def operation():
        calls.append(1)
        if len(calls) == 1:
            raise auth_error('Too many requests', 429)
        return 'ok'

    assert helper.execute_with_retry(operation, 'rate limited op', stored) == 'ok'
    assert sleeps == [0.5, 2.0]


def test_rate_limit_exhausts_retries(helper, fake_auth, clock, sleeps):
    stored = signed_in(fake_auth, clock)

    def operation():
        raise auth_error('Too many requests', 429)

    with pytest.raises(RetriesExhausted, match='Max retries \\(2\\) exceeded for bulk update'):
        helper.execute_with_retry(operation, 'bulk update', stored)
    assert sleeps == [0.5, 2.0, 4.0]


def test_unauthorized_refreshes_and_retries(helper, fake_auth, clock, sleeps):
    stored = signed_in(fake_auth, clock, expires_in=30)
    refreshed = []
    calls = []

    def operation():
        calls.append(1)
        if len(calls) == 1:
            raise api_error('JWT expired', 'PGRST301')
        return 'ok'

    result = helper.execute_with_retry(operation, 'write', stored, on_refresh=refreshed.append)

    assert result == 'ok'
    assert len(refreshed) == 1
    assert refreshed[0]['access_token'] != stored['access_token']
    assert 1 in sleeps


def test_other_errors_propagate(helper, fake_auth, clock):
    stored = signed_in(fake_auth, clock)
    error = api_error('duplicate key', '23505')

    def operation():
        raise error

    with pytest.raises(type(error)) as excinfo:
        helper.execute_with_retry(operation, 'insert', stored)
    assert excinfo.value is error


def test_retry_counter_is_per_call(helper, fake_auth, clock):
    stored = signed_in(fake_auth, clock)
    state = {'fail': True}

    def flaky():
        if state['fail']:
            state['fail'] = False
            raise auth_error('Too many requests', 429)
        return 'ok'

    assert helper.execute_with_retry(flaky, 'first', stored) == 'ok'
    state['fail'] = True
    assert helper.execute_with_retry(flaky, 'second', stored) == 'ok'
