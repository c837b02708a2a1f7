from typing import Optional, Dict, Any
import logging

import firebase_admin
from firebase_admin import credentials, auth as fb_auth, firestore_async

from church_admin.core.config import settings


logger = logging.getLogger(__name__)


def _init_firebase_app() -> Optional[firebase_admin.App]:
    try:
        if firebase_admin._apps:  # type: ignore[attr-defined]
            return firebase_admin.get_app()
        if not settings.firebase_configured:
            logger.warning("Firebase credentials are not configured; skipping initialization")
            return None
        cred = credentials.Certificate({
            "type": "service_account",
            "project_id": settings.FIREBASE_PROJECT_ID,
            "private_key": settings.FIREBASE_PRIVATE_KEY,
            "client_email": settings.FIREBASE_CLIENT_EMAIL,
            "token_uri": "https://oauth2.googleapis.com/token",
        })
        app = firebase_admin.initialize_app(cred, {
            "projectId": settings.FIREBASE_PROJECT_ID,
            "databaseURL": settings.FIREBASE_DATABASE_URL or None,
        })
        logger.info("Firebase app initialized")
        return app
    except (ValueError, IOError) as e:
        logger.error(f"Failed to initialize Firebase app: {e}")
        return None


def get_firestore_client():
    """Async Firestore client bound to the configured Firebase app."""
    app = _init_firebase_app()
    if app is None:
        raise RuntimeError("Firestore requested but Firebase credentials are not configured")
    return firestore_async.client(app=app)


def verify_firebase_id_token(id_token: str) -> Optional[Dict[str, Any]]:
    """Verify a Firebase ID token and return decoded claims or None."""
    app = _init_firebase_app()
    if app is None:
        return None
    try:
        return fb_auth.verify_id_token(id_token, app=app)
    except (ValueError, fb_auth.InvalidIdTokenError, fb_auth.ExpiredIdTokenError, fb_auth.RevokedIdTokenError, fb_auth.CertificateFetchError) as e:
        logger.warning(f"Firebase token verification failed: {e}")
        return None


def extract_user_info_from_claims(claims: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """Extract uid, display name and email from Firebase claims."""
    return {
        "uid": claims.get("uid") or claims.get("sub"),
        "name": claims.get("name"),
        "email": claims.get("email"),
    }
