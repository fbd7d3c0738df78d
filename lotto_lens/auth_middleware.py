# Authentication Middleware for the ticket reader API
"""
Bearer token verification. Tokens are Firebase ID tokens (RS256) checked
against Google's published signing keys with PyJWT. Exactly one allow-listed
email may use the API; everything else is rejected before any model or
lookup call is made.
"""

from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, Request
from loguru import logger

from lotto_lens.config import Settings, get_settings
from lotto_lens.errors import AuthError

GOOGLE_JWKS_URL = "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"
JWT_ALGORITHM = "RS256"


class FirebaseTokenVerifier:
    """Verifies Firebase ID tokens and returns their claims."""

    def __init__(self, project_id: str, jwks_url: str = GOOGLE_JWKS_URL):
        if not project_id:
            raise ValueError("FIREBASE_PROJECT_ID environment variable is required")
        self.project_id = project_id
        self.issuer = f"https://securetoken.google.com/{project_id}"
        self._jwks_client = jwt.PyJWKClient(jwks_url)

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate an ID token.

        Raises:
            AuthError: if the token is invalid, expired or lacks an email
        """
        try:
            signing_key = self._jwks_client.get_signing_key_from_jwt(token)
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=[JWT_ALGORITHM],
                audience=self.project_id,
                issuer=self.issuer,
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthError("Token has expired") from e
        except (jwt.InvalidTokenError, jwt.PyJWKClientError) as e:
            raise AuthError(f"Invalid token: {e}") from e

        if not payload.get("email"):
            raise AuthError("Token has no email claim")
        return payload


_verifier: Optional[FirebaseTokenVerifier] = None


def get_token_verifier() -> FirebaseTokenVerifier:
    global _verifier
    if _verifier is None:
        try:
            _verifier = FirebaseTokenVerifier(get_settings().firebase_project_id or "")
        except ValueError as e:
            logger.error(f"Token verification is not configured: {e}")
            raise AuthError("Unauthorized: authentication is not configured") from e
    return _verifier


def extract_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization") or ""
    if not auth_header.startswith("Bearer "):
        raise AuthError("Unauthorized: Invalid or missing token")
    token = auth_header[len("Bearer "):].strip()
    if not token:
        raise AuthError("Unauthorized: Invalid or missing token")
    return token


def authorize_email(claims: Dict[str, Any], settings: Settings) -> str:
    """Allow exactly the configured email. Fails closed when none is configured."""
    email = claims.get("email")
    allowed = settings.allowed_user_email
    if not allowed or email != allowed:
        logger.warning(f"Rejected request from non allow-listed user: {email}")
        raise AuthError("Forbidden: You are not allowed to use this API.", status_code=403)
    return email


def require_allowed_user(
    request: Request,
    verifier: FirebaseTokenVerifier = Depends(get_token_verifier),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """FastAPI dependency guarding every ticket endpoint."""
    token = extract_bearer_token(request)
    try:
        claims = verifier.verify(token)
    except AuthError as e:
        logger.warning(f"Authentication error: {e}")
        raise AuthError("Unauthorized: Invalid or missing token") from e

    email = authorize_email(claims, settings)
    logger.debug(f"User authenticated: {email}")
    return {"email": email}
