import pytest
from jose import jwt

from app.core.security import InvalidTokenError, create_access_token, decode_user_id
from app.models import Role
from app.services.rate_limit import SimpleRateLimiter
from app.services.users import normalize_email


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_limiter_folds_equivalent_keys():
    limiter = SimpleRateLimiter(max_events=2, window_seconds=60, key_func=normalize_email)
    assert limiter.allow("Desk@Example.com")
    assert limiter.allow("  desk@example.com ")
    assert not limiter.allow("DESK@EXAMPLE.COM")
    assert limiter.tracked_keys() == 1


def test_limiter_drops_expired_buckets():
    clock = FakeClock()
    limiter = SimpleRateLimiter(max_events=1, window_seconds=60, clock=clock)
    assert limiter.allow("10.0.0.1")
    assert not limiter.allow("10.0.0.1")
    assert limiter.retry_after("10.0.0.1") == 60

    clock.now += 61
    assert limiter.retry_after("10.0.0.1") == 0
    assert limiter.tracked_keys() == 0
    assert limiter.allow("10.0.0.1")


def test_login_throttle_ignores_email_case(api_client):
    statuses = []
    for index in range(11):
        email = "Nobody@Example.com" if index % 2 else "nobody@example.com"
        response = api_client.post("/auth/login", json={"email": email, "password": "whatever"})
        statuses.append(response.status_code)
    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429
    assert int(response.headers["Retry-After"]) >= 1


def test_token_round_trip_carries_user_id():
    token = create_access_token(
        user_id=42,
        role=Role.doctor,
        clinic_id=7,
        secret="unit-test-secret",
        alg="HS256",
        expires_minutes=5,
    )
    assert decode_user_id(token, secret="unit-test-secret", alg="HS256") == 42
    claims = jwt.get_unverified_claims(token)
    assert claims["role"] == "DOCTOR"
    assert claims["clinic_id"] == 7


def test_token_with_foreign_signature_is_rejected():
    token = create_access_token(
        user_id=1,
        role=Role.admin,
        clinic_id=1,
        secret="some-other-secret",
        alg="HS256",
        expires_minutes=5,
    )
    with pytest.raises(InvalidTokenError):
        decode_user_id(token, secret="unit-test-secret", alg="HS256")
