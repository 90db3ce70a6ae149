"""
Firebase ID token verification.

The mobile client signs in with Firebase and sends its ID token as a bearer
token; this provider checks it with the Admin SDK and hands back the claims
the user service needs to provision a profile (uid, display name, picture).
"""

import asyncio
import logging
import os
from typing import Dict, Any, Optional

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from firebase_admin import exceptions as firebase_exceptions

from common.auth.base import AuthProvider

logger = logging.getLogger(__name__)

# Service account fields that can be supplied one environment variable each
# (deployments without a credentials file on disk)
_ENV_CREDENTIAL_FIELDS = {
    "project_id": "PROJECT_ID",
    "private_key_id": "PRIVATE_KEY_ID",
    "private_key": "PRIVATE_KEY",
    "client_email": "CLIENT_EMAIL",
    "client_id": "CLIENT_ID",
}


def _credentials_from_env() -> Optional[Dict[str, Any]]:
    """Service account dict from the environment, or None if incomplete."""
    values = {
        key: os.environ.get(env_name, "").strip().strip('"')
        for key, env_name in _ENV_CREDENTIAL_FIELDS.items()
    }
    if not (values["project_id"] and values["private_key"] and values["client_email"]):
        return None

    values["private_key"] = values["private_key"].replace("\\n", "\n")
    values["type"] = "service_account"
    values["token_uri"] = "https://oauth2.googleapis.com/token"
    return values


def _initialize_app(credentials_path: Optional[str], project_id: Optional[str]) -> None:
    if firebase_admin._apps:
        return

    if credentials_path:
        cred = credentials.Certificate(credentials_path)
    else:
        env_credentials = _credentials_from_env()
        # Application default credentials on GCP runtimes
        cred = credentials.Certificate(env_credentials) if env_credentials else credentials.ApplicationDefault()

    options = {"projectId": project_id} if project_id else {}
    firebase_admin.initialize_app(cred, options)
    logger.info("Firebase Admin initialized")


class FirebaseAuth(AuthProvider):
    """
    Verifies Firebase ID tokens.

    The Admin SDK is synchronous (it may fetch Google's signing keys), so
    verification runs in a worker thread.
    """

    def __init__(
        self,
        credentials_path: Optional[str] = None,
        project_id: Optional[str] = None,
        check_revoked: bool = False,
    ):
        _initialize_app(credentials_path, project_id)
        self._check_revoked = check_revoked

    async def verify_token(self, token: str) -> Dict[str, Any]:
        try:
            claims = await asyncio.to_thread(
                firebase_auth.verify_id_token, token, check_revoked=self._check_revoked
            )
        except firebase_auth.RevokedIdTokenError:
            raise ValueError("Token has been revoked")
        except firebase_auth.ExpiredIdTokenError:
            raise ValueError("Token has expired")
        except (firebase_auth.InvalidIdTokenError, ValueError) as e:
            raise ValueError(f"Invalid token: {e}")
        except firebase_exceptions.FirebaseError as e:
            raise ValueError(f"Token verification failed: {e}")

        # Profile fields are optional in Firebase tokens
        return {
            "uid": claims.get("uid") or claims.get("sub"),
            "name": claims.get("name"),
            "picture": claims.get("picture"),
            "email": claims.get("email"),
            "phone_number": claims.get("phone_number"),
        }
