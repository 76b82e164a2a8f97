"""
Email verification and password reset tokens.

Issuing a token also queues an ``OutboundEmail`` row carrying the link; an
external mailer sends those rows. A token is redeemable once, until it
expires, and issuing a new one retires the user's earlier unused tokens of
the same purpose.
"""
import datetime
import secrets

from flask import current_app
from sqlalchemy import select, update

from slotbook.errors import Conflict, ResourceNotFound
from slotbook.models import AccountToken, OutboundEmail

VERIFY_EMAIL = "VERIFY_EMAIL"
RESET_PASSWORD = "RESET_PASSWORD"

_LINK_PATHS = {
    VERIFY_EMAIL: "/verify-email",
    RESET_PASSWORD: "/reset-password",
}


def _lifetime(purpose):
    if purpose == VERIFY_EMAIL:
        return datetime.timedelta(
            hours=current_app.config.get("EMAIL_VERIFICATION_EXPIRES_HOURS", 24)
        )
    return datetime.timedelta(
        minutes=current_app.config.get("PASSWORD_RESET_EXPIRES_MINUTES", 60)
    )


def issue_account_token(session, user, purpose, now=None):
    """Create a token for ``user`` and queue the email that carries it. Caller commits."""
    now = now or datetime.datetime.now()

    session.execute(
        update(AccountToken)
        .where(
            AccountToken.user_id == user.id,
            AccountToken.purpose == purpose,
            AccountToken.used_at.is_(None),
        )
        .values(used_at=now)
    )

    account_token = AccountToken(
        user_id=user.id,
        purpose=purpose,
        token=secrets.token_urlsafe(32),
        expires_at=now + _lifetime(purpose),
    )
    session.add(account_token)

    base_url = current_app.config.get("FRONTEND_URL", "").rstrip("/")
    session.add(
        OutboundEmail(
            user_id=user.id,
            recipient=user.email,
            template=purpose,
            payload={
                "fullName": user.full_name,
                "link": f"{base_url}{_LINK_PATHS[purpose]}?token={account_token.token}",
                "expiresAt": account_token.expires_at.isoformat(),
            },
        )
    )
    current_app.logger.info(f"Queued {purpose} email for user {user.id}")
    return account_token


def redeem_account_token(session, raw_token, purpose, now=None):
    """Mark a valid token used and return it. Caller commits."""
    now = now or datetime.datetime.now()

    account_token = session.scalar(
        select(AccountToken)
        .where(AccountToken.token == raw_token, AccountToken.purpose == purpose)
        .with_for_update()
    )
    if account_token is None:
        raise ResourceNotFound("Invalid or unknown token")
    if account_token.used_at is not None:
        raise Conflict("This link has already been used")
    if account_token.expires_at <= now:
        raise Conflict("This link has expired, request a new one")

    account_token.used_at = now
    return account_token
