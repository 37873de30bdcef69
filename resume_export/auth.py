# resume_export/auth.py
import logging
from functools import wraps

from authlib.jose import jwt
from authlib.jose.errors import ExpiredTokenError, JoseError
from flask import current_app, g, request

from .errors import Unauthorized

logger = logging.getLogger(__name__)


def bearer_token():
    """Token from the Authorization header, falling back to the `token` cookie."""
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip() or None
    return request.cookies.get('token')


def verify_token(token, secret):
    """Return the user id carried by a signed JWT."""
    if not secret:
        logger.error("JWT_SECRET is not configured; rejecting all tokens")
        raise Unauthorized("Not authorized to access this route")
    try:
        claims = jwt.decode(token, secret)
        claims.validate()
    except ExpiredTokenError:
        raise Unauthorized("Token expired")
    except (JoseError, ValueError):
        raise Unauthorized("Invalid token")

    user_id = claims.get('id') or claims.get('sub')
    if not user_id:
        raise Unauthorized("Invalid token")
    return str(user_id)


def requires_auth(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        token = bearer_token()
        if not token:
            raise Unauthorized("Not authorized to access this route")
        g.user_id = verify_token(token, current_app.config['JWT_SECRET'])
        return f(*args, **kwargs)

    return decorated


def current_user_id():
    return g.user_id
