from datetime import datetime, timedelta

import pytest

from watchwise.errors import Unauthorized
from watchwise.models import AppSession, AppUser
from watchwise.services.session_service import SessionService, hash_token, parse_bearer, user_time_zone


class TestParseBearer:
    def test_extracts_token(self):
        assert parse_bearer("Bearer abc.def") == "abc.def"
        assert parse_bearer("bearer   xyz ") == "xyz"

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer   ", "Basic dXNlcjpwYXNz", "abc"])
    def test_rejects_malformed_headers(self, header):
        with pytest.raises(Unauthorized):
            parse_bearer(header)


class TestSessionService:
    def test_create_and_validate(self, db):
        service = SessionService(ttl_days=30)
        token, rec = service.create(db, "user-1", provider_token="ya29.token", time_zone="Europe/Berlin")

        assert rec.token_hash == hash_token(token)
        assert token not in rec.token_hash
        assert db.get(AppUser, "user-1").time_zone == "Europe/Berlin"
        assert service.validate(db, token).id == rec.id
        assert service.authenticate(db, f"Bearer {token}").provider_token == "ya29.token"

    def test_unknown_token(self, db):
        with pytest.raises(Unauthorized):
            SessionService(ttl_days=30).validate(db, "nope")

    def test_expired_session(self, db):
        service = SessionService(ttl_days=30)
        token, rec = service.create(db, "user-1")
        rec.expires_at = datetime.utcnow() - timedelta(minutes=1)
        db.commit()
        with pytest.raises(Unauthorized):
            service.validate(db, token)

    def test_revoked_session(self, db):
        service = SessionService(ttl_days=30)
        token, rec = service.create(db, "user-1")
        service.revoke(db, rec)
        with pytest.raises(Unauthorized):
            service.validate(db, token)

    def test_second_session_keeps_user(self, db):
        service = SessionService(ttl_days=30)
        service.create(db, "user-1", time_zone="Asia/Tokyo")
        service.create(db, "user-1")
        assert db.query(AppUser).count() == 1
        assert db.query(AppSession).count() == 2
        assert db.get(AppUser, "user-1").time_zone == "Asia/Tokyo"


class TestUserTimeZone:
    def test_falls_back_to_default(self, db):
        assert user_time_zone(db, "ghost", "UTC") == "UTC"
        db.add(AppUser(app_user_id="user-1"))
        db.commit()
        assert user_time_zone(db, "user-1", "Europe/London") == "Europe/London"

    def test_uses_stored_zone(self, db):
        db.add(AppUser(app_user_id="user-1", time_zone="America/Chicago"))
        db.commit()
        assert user_time_zone(db, "user-1", "UTC") == "America/Chicago"
