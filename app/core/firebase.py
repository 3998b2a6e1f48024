import logging
from typing import Any

import firebase_admin
from firebase_admin import auth, credentials

from app.config import get_settings

logger = logging.getLogger(__name__)


def initialize_firebase() -> None:
  """Initializes the Firebase Admin SDK."""
  if firebase_admin._apps:
    return

  settings = get_settings()
  if not settings.firebase_project_id:
    logger.warning("Firebase Project ID not set. Firebase Admin SDK not initialized.")
    return

  try:
    if settings.firebase_service_account_json_path:
      cred = credentials.Certificate(settings.firebase_service_account_json_path)
      firebase_admin.initialize_app(cred, {"projectId": settings.firebase_project_id})
    else:
      # Use default credentials (e.g. Google Application Default Credentials)
      firebase_admin.initialize_app(options={"projectId": settings.firebase_project_id})
    logger.info("Firebase Admin SDK initialized successfully.")
  except Exception as e:  # noqa: BLE001
    logger.error("Failed to initialize Firebase Admin SDK: %s", e)


def verify_id_token(id_token: str) -> dict[str, Any] | None:
  """Verifies a Firebase ID token. Lazily initializes if needed."""
  if not firebase_admin._apps:
    initialize_firebase()

  try:
    return auth.verify_id_token(id_token)
  except Exception as e:  # noqa: BLE001
    logger.warning("Token verification failed: %s", e)
    return None


def set_feature_claims(firebase_uid: str, features: list[str]) -> None:
  """Replace the subscription feature grants stored as custom claims for a user."""
  if not firebase_admin._apps:
    initialize_firebase()

  # Preserve unrelated custom claims so only the grant list changes.
  existing = auth.get_user(firebase_uid).custom_claims or {}
  claims = {**existing, "features": sorted(set(features))}
  auth.set_custom_user_claims(firebase_uid, claims)


def get_feature_claims(firebase_uid: str) -> list[str]:
  """Return the raw feature grant names stored on a user's custom claims."""
  if not firebase_admin._apps:
    initialize_firebase()

  claims = auth.get_user(firebase_uid).custom_claims or {}
  raw = claims.get("features") or []
  if isinstance(raw, str):
    return raw.replace(",", " ").split()
  return [str(name) for name in raw]
