"""
Token service

Issues and checks the signed identity tokens carried in the USER_TOKEN
cookie. Signing goes through Flask-JWT-Extended so that tokens issued here
are exactly what the route guard (`jwt_required`) accepts.

`verify()` never raises for a bad token: malformed, forged and expired
tokens all come back as ``None`` so callers treat them uniformly as
"unauthenticated".
"""
import logging

import jwt as pyjwt
from flask import current_app
from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException

logger = logging.getLogger(__name__)


class TokenConfigurationError(RuntimeError):
    """Raised when tokens cannot be signed because no secret is configured"""


def _require_secret():
    if not current_app.config.get('JWT_SECRET_KEY'):
        raise TokenConfigurationError('JWT_SECRET is not configured; refusing to issue tokens')


def issue(user_id):
    """Sign a token embedding {"id": user_id}"""
    _require_secret()
    return create_access_token(identity=str(user_id))


def verify(token):
    """
    Check signature and expiry

    Returns:
        str | None: the embedded user id, or None for any invalid token
    """
    if not token:
        return None
    try:
        claims = decode_token(token)
    except (pyjwt.PyJWTError, JWTExtendedException) as e:
        logger.debug(f"Token rejected: {type(e).__name__}")
        return None
    return claims.get(current_app.config['JWT_IDENTITY_CLAIM'])


def decode(token):
    """
    Read claims WITHOUT checking signature or expiry

    For display/inspection only. Never authorize anything with this.
    """
    try:
        return pyjwt.decode(token, options={'verify_signature': False, 'verify_exp': False})
    except pyjwt.PyJWTError:
        return None
