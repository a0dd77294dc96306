"""Account creation, bearer-token authentication and user preferences."""

import logging
import secrets
from typing import Any, Dict, Optional

from fastapi import Depends, Header

from context import AppContext, get_context
from errors import Unauthenticated
from schemas import Preferences, PreferencesUpdate, User

logger = logging.getLogger(__name__)


def new_user(name: str, email: str) -> User:
    """A fresh account: empty portfolio, no alerts, zero wallet balance."""
    return User(name=name, email=email.strip().lower(), api_token=secrets.token_urlsafe(32))


def register(ctx: AppContext, name: str, email: str) -> Dict[str, Any]:
    user = new_user(name, email)
    user_id = ctx.db.create_user(user)
    logger.info("Registered user %s", user_id)
    return {"token": user.api_token, "user": profile(user_id, user)}


def profile(user_id: str, user: User) -> Dict[str, Any]:
    return {
        "id": user_id,
        "name": user.name,
        "email": user.email,
        "preferences": user.preferences.model_dump(),
        "wallet": user.wallet.model_dump(),
    }


def apply_preferences(current: Preferences, update: PreferencesUpdate) -> Preferences:
    changes = update.model_dump(exclude_none=True)
    if "currency" in changes:
        changes["currency"] = changes["currency"].lower()
    if update.notifications is not None:
        changes["notifications"] = current.notifications.model_copy(
            update=update.notifications.model_dump(exclude_none=True))
    return current.model_copy(update=changes)


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise Unauthenticated("No token, authorization denied")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated("Token is not valid")
    return token.strip()


def current_user_id(
    authorization: Optional[str] = Header(default=None),
    ctx: AppContext = Depends(get_context),
) -> str:
    """FastAPI dependency resolving the caller's user id from the bearer token."""
    token = _bearer_token(authorization)
    doc = ctx.db.find_user_by_token(token)
    if not doc:
        raise Unauthenticated("Token is not valid")
    return str(doc["_id"])
