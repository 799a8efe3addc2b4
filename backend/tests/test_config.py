# backend/tests/test_config.py

from invite_service.core.config import Settings


def test_origins_list_accepts_comma_separated_string():
    s = Settings(_env_file=None, allowed_origins=" http://a.test , http://b.test,, ")
    assert s.origins_list() == ["http://a.test", "http://b.test"]


def test_origins_list_accepts_json_list():
    s = Settings(_env_file=None, allowed_origins='["http://a.test", "http://b.test"]')
    assert s.origins_list() == ["http://a.test", "http://b.test"]


def test_basic_auth_users_and_port_are_read_from_env(monkeypatch):
    monkeypatch.setenv("BASIC_AUTH_USERS", '{"ops": "s3cret", "audit": "pw"}')
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("TRUST_PROXY_HEADERS", "true")

    s = Settings(_env_file=None)
    assert s.basic_auth_users == {"ops": "s3cret", "audit": "pw"}
    assert s.app_port == 8080
    assert s.trust_proxy_headers is True


def test_defaults():
    s = Settings(_env_file=None)
    assert s.api_prefix == ""
    assert s.validate_rate_limit > 0
    assert s.trust_proxy_headers is False
