"""
Per-request authentication.

The bearer token is decoded once per request into an ``AuthContext`` which
is handed explicitly to the view and from there into the core operations.
Nothing about the caller is kept in process-wide state.
"""
import datetime
from dataclasses import dataclass
from functools import wraps

import bcrypt
import jwt
from flask import current_app, request

from slotbook.errors import AuthenticationRequired, Unauthorized


@dataclass(frozen=True)
class AuthContext:
    user_id: int
    role: str
    email: str = ""

    def require_role(self, *roles):
        if self.role not in roles:
            raise Unauthorized(f"This action requires role {' or '.join(roles)}")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, stored_hash) -> bool:
    if isinstance(stored_hash, str):
        stored_hash = stored_hash.encode("utf-8")
    return bcrypt.checkpw(password.encode("utf-8"), stored_hash)


def issue_token(user) -> str:
    minutes = current_app.config.get("JWT_EXPIRES_MINUTES", 60)
    payload = {
        "user_id": user.id,
        "email": user.email,
        "role": user.role,
        "exp": datetime.datetime.now(datetime.timezone.utc)
        + datetime.timedelta(minutes=minutes),
    }
    return jwt.encode(
        payload,
        current_app.config["SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def decode_token(token: str) -> AuthContext:
    try:
        payload = jwt.decode(
            token,
            current_app.config["SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationRequired("Access token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationRequired("Invalid access token")

    if "user_id" not in payload or "role" not in payload:
        raise AuthenticationRequired("Invalid access token")
    return AuthContext(
        user_id=int(payload["user_id"]),
        role=payload["role"],
        email=payload.get("email", ""),
    )


def current_auth() -> AuthContext:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AuthenticationRequired()
    return decode_token(token.strip())


def token_required(*roles):
    """
    Require a valid bearer token, optionally restricted to ``roles``.

    The decoded ``AuthContext`` is passed to the view as its first argument.
    """

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            auth = current_auth()
            if roles:
                auth.require_role(*roles)
            return view(auth, *args, **kwargs)

        return wrapper

    return decorator
