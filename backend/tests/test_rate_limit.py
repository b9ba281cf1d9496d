from conftest import auth_headers
from remise.system.rate_limit import FixedWindowRateLimiter


class _Clock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_fixed_window_blocks_after_limit_and_reopens():
    clock = _Clock()
    limiter = FixedWindowRateLimiter(5, 900, clock=clock)

    results = [limiter.hit("1.2.3.4:dana") for _ in range(6)]

    assert [r.allowed for r in results] == [True] * 5 + [False]
    assert results[4].remaining == 0
    assert limiter.remaining("1.2.3.4:dana") == 0
    assert limiter.hit("5.6.7.8:dana").allowed

    clock.now += 900
    assert limiter.hit("1.2.3.4:dana").allowed


def test_sixth_login_attempt_in_window_is_rate_limited(client, make_tenant, make_user):
    make_user(make_tenant(), username="dana", password="correct-horse-battery")

    statuses = [
        client.post("/api/v1/auth/login", json={"username": "dana", "password": "wrong-guess"}).status_code
        for _ in range(6)
    ]

    assert statuses == [401] * 5 + [429]

    blocked = client.post("/api/v1/auth/login", json={"username": "dana", "password": "correct-horse-battery"})
    assert blocked.status_code == 429
    assert int(blocked.headers["retry-after"]) >= 1
    assert blocked.headers["x-ratelimit-limit"] == "5"


def test_successful_login_resets_the_counter(client, make_tenant, make_user):
    make_user(make_tenant(), username="erin", password="correct-horse-battery")

    for _ in range(4):
        client.post("/api/v1/auth/login", json={"username": "erin", "password": "wrong-guess"})
    ok = client.post("/api/v1/auth/login", json={"username": "erin", "password": "correct-horse-battery"})
    after = client.post("/api/v1/auth/login", json={"username": "erin", "password": "wrong-guess"})

    assert ok.status_code == 200
    assert after.status_code == 401


def test_api_requests_are_limited_per_caller(client, monkeypatch, make_tenant, make_user):
    from remise.system import rate_limit

    monkeypatch.setattr(rate_limit.api_limiter, "max_requests", 3)
    user = make_user(make_tenant())

    statuses = [client.get("/api/v1/items", headers=auth_headers(user)).status_code for _ in range(4)]

    assert statuses == [200, 200, 200, 429]


def test_forged_forwarding_headers_do_not_reset_the_login_limit(client, make_tenant, make_user):
    make_user(make_tenant(), username="dana", password="correct-horse-battery")

    statuses = [
        client.post(
            "/api/v1/auth/login",
            json={"username": "dana", "password": "wrong-guess"},
            headers={"X-Forwarded-For": f"203.0.113.{n}", "X-Real-IP": f"198.51.100.{n}"},
        ).status_code
        for n in range(6)
    ]

    assert statuses == [401] * 5 + [429]


def test_forwarded_address_is_used_only_behind_a_trusted_proxy(monkeypatch):
    from starlette.requests import Request

    from remise.audit.service import client_info
    from remise.core.config import settings

    request = Request(
        {
            "type": "http",
            "headers": [(b"x-forwarded-for", b"203.0.113.7, 10.0.0.1"), (b"user-agent", b"curl")],
            "client": ("10.0.0.1", 5000),
        }
    )

    assert client_info(request) == ("10.0.0.1", "curl")
    monkeypatch.setattr(settings, "TRUST_PROXY_HEADERS", True)
    assert client_info(request) == ("203.0.113.7", "curl")
