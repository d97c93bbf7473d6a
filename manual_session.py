"""Issue a bearer session for local testing.

    APP_USER_ID=me YOUTUBE_ACCESS_TOKEN=ya29... python manual_session.py
"""
import os

from watchwise.db import db_session
from watchwise.services.session_service import SessionService
from watchwise.settings import get_settings

# Set these before running or edit inline
APP_USER_ID = os.environ.get("APP_USER_ID", "")  # REQUIRED
YOUTUBE_ACCESS_TOKEN = os.environ.get("YOUTUBE_ACCESS_TOKEN") or None
TIME_ZONE = os.environ.get("TIME_ZONE") or None

if not APP_USER_ID:
    raise SystemExit("APP_USER_ID is required (env APP_USER_ID)")

service = SessionService(ttl_days=get_settings().session_ttl_days)
with db_session() as sess:
    token, rec = service.create(sess, APP_USER_ID, provider_token=YOUTUBE_ACCESS_TOKEN, time_zone=TIME_ZONE)
    print(f"session_id={rec.id} expires_at={rec.expires_at.isoformat()}")
    print(f"Authorization: Bearer {token}")
