import hashlib
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from watchwise.errors import Unauthorized
from watchwise.models import AppSession, AppUser


def parse_bearer(authorization: Optional[str]) -> str:
    if not authorization:
        raise Unauthorized()
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized()
    return token.strip()


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class SessionService:
    """Opaque bearer sessions; only the token hash is stored."""

    def __init__(self, ttl_days: int) -> None:
        self.ttl = timedelta(days=max(1, ttl_days))

    def create(
        self,
        db: Session,
        app_user_id: str,
        *,
        provider_token: Optional[str] = None,
        time_zone: Optional[str] = None,
    ) -> Tuple[str, AppSession]:
        user = db.get(AppUser, app_user_id)
        if not user:
            user = AppUser(app_user_id=app_user_id, time_zone=time_zone)
            db.add(user)
        elif time_zone:
            user.time_zone = time_zone

        token = secrets.token_urlsafe(32)
        now = datetime.utcnow()
        rec = AppSession(
            id=str(uuid.uuid4()),
            app_user_id=app_user_id,
            token_hash=hash_token(token),
            provider_token=provider_token,
            issued_at=now,
            expires_at=now + self.ttl,
        )
        db.add(rec)
        db.commit()
        db.refresh(rec)
        return token, rec

    def validate(self, db: Session, token: str) -> AppSession:
        rec = db.query(AppSession).filter(AppSession.token_hash == hash_token(token)).first()
        if not rec or rec.revoked_at is not None or rec.expires_at <= datetime.utcnow():
            raise Unauthorized()
        return rec

    def authenticate(self, db: Session, authorization: Optional[str]) -> AppSession:
        return self.validate(db, parse_bearer(authorization))

    def revoke(self, db: Session, rec: AppSession) -> None:
        rec.revoked_at = datetime.utcnow()
        db.add(rec)
        db.commit()


def user_time_zone(db: Session, app_user_id: str, default: str) -> str:
    user = db.get(AppUser, app_user_id)
    return (user.time_zone if user and user.time_zone else None) or default
