from datetime import timedelta

from db import SessionLocal
from models import RefreshToken, utcnow
from app.services.refresh_tokens import RefreshTokenStore


class TestRefreshTokenStore:
    """Single-use refresh tokens."""

    def test_create_and_find(self, db, user):
        store = RefreshTokenStore(db)
        record = store.create(user.id, device_info="pytest")
        db.commit()

        found = store.find(record.token)

        assert found.id == record.id
        assert found.device_info == "pytest"
        assert len(record.token) == 80
        assert record.expires_at - record.created_at == timedelta(days=30)

    def test_consume_is_single_use(self, db, user):
        store = RefreshTokenStore(db)
        record = store.create(user.id)
        db.commit()

        first = store.consume(record.token)
        db.commit()
        second = store.consume(record.token)

        assert first is not None
        assert first.is_revoked is True
        assert second is None
        assert store.find(record.token) is None

    def test_first_writer_wins_across_sessions(self, db, user):
        record = RefreshTokenStore(db).create(user.id)
        db.commit()

        a, b = SessionLocal(), SessionLocal()
        try:
            won = RefreshTokenStore(a).consume(record.token)
            a.commit()
            lost = RefreshTokenStore(b).consume(record.token)
            b.commit()
        finally:
            a.close()
            b.close()

        assert won is not None
        assert lost is None

    def test_expired_token_is_rejected_and_revoked(self, db, user):
        store = RefreshTokenStore(db)
        past = utcnow() - timedelta(days=31)
        record = store.create(user.id, now=past)
        db.commit()

        assert store.consume(record.token) is None
        db.commit()

        row = db.query(RefreshToken).filter(RefreshToken.id == record.id).one()
        db.refresh(row)
        assert row.is_revoked is True

    def test_unknown_token(self, db):
        assert RefreshTokenStore(db).consume("nope") is None

    def test_revoke_all_for_user(self, db, user):
        store = RefreshTokenStore(db)
        tokens = [store.create(user.id).token for _ in range(3)]
        db.commit()

        assert store.revoke_all_for_user(user.id) == 3
        db.commit()
        assert all(store.find(t) is None for t in tokens)
