from datetime import datetime, timedelta, timezone

from conftest import cookie_pair

from app.services.session import RefreshTokenCookie, Session, SessionStore, serialize_cookie


NOW = datetime(2024, 8, 10, 12, 0, tzinfo=timezone.utc)


class TestSessionStore:
    """Encrypted {userId, expiresAt} cookie."""

    def test_commit_then_read(self):
        store = SessionStore(secret="s3cret")
        header = store.commit(Session(user_id="u-1", expires_at=NOW), max_age=604800)

        name, value = cookie_pair(header)
        session = store.read({name: value})

        assert name == "auth"
        assert session == Session(user_id="u-1", expires_at=NOW)
        assert "Max-Age=604800" in header
        assert "HttpOnly" in header

    def test_cookie_from_another_secret_is_ignored(self):
        header = SessionStore(secret="one").commit(Session(user_id="u-1", expires_at=NOW))
        name, value = cookie_pair(header)

        assert SessionStore(secret="two").read({name: value}) is None

    def test_garbage_and_missing_cookie(self):
        store = SessionStore(secret="s3cret")

        assert store.read({}) is None
        assert store.read({"auth": "not-a-token"}) is None

    def test_expiry(self):
        store = SessionStore(secret="s3cret")

        assert store.is_expired(Session("u-1", NOW - timedelta(seconds=1)), now=NOW)
        assert not store.is_expired(Session("u-1", NOW + timedelta(seconds=1)), now=NOW)
        assert store.is_expired(Session("u-1", None), now=NOW)

    def test_new_session_lasts_seven_days(self):
        session = SessionStore(secret="s3cret").new_session("u-1", now=NOW)

        assert session.expires_at - NOW == timedelta(days=7)

    def test_destroy_clears_cookie(self):
        header = SessionStore(secret="s3cret").destroy()

        assert header.startswith("auth=")
        assert "Max-Age=0" in header


class TestRefreshTokenCookie:
    def test_serialize_then_parse(self):
        cookie = RefreshTokenCookie(secret="s3cret")
        name, value = cookie_pair(cookie.serialize("abc123", max_age=2592000))

        assert name == "refresh_token"
        assert value != "abc123"
        assert cookie.parse({name: value}) == "abc123"

    def test_tampered_value(self):
        assert RefreshTokenCookie(secret="s3cret").parse({"refresh_token": "abc123"}) is None


def test_serialize_cookie_flags():
    header = serialize_cookie("x", "1", secure=True)

    assert "Path=/" in header
    assert "SameSite=lax" in header
    assert "Secure" in header
    assert "Max-Age" not in header
