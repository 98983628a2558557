"""Request authentication dependencies.

Sessions live in the web frontend. It forwards the signed-in user's id in
the ``X-User-Id`` header on every API call; Clio trusts that header the same
way it trusts the network boundary in front of it.

Public interface:
    ``require_user``: returns AuthContext or raises 401.
    ``require_cron``: passes for the scheduler, raises 401 otherwise.
"""

import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Header

from .config import settings
from ..exceptions import AuthenticationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller."""

    user_id: str


def require_user(x_user_id: Optional[str] = Header(default=None)) -> AuthContext:
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationError()
    return AuthContext(user_id=x_user_id.strip())


def is_authorized_cron(authorization: Optional[str], vercel_cron: Optional[str], secret: str) -> bool:
    """Scheduler header, or ``Authorization: Bearer <secret>`` when a secret is set."""
    if vercel_cron == "1":
        return True
    if not secret or not authorization:
        return False
    return hmac.compare_digest(authorization, f"Bearer {secret}")


def require_cron(
    authorization: Optional[str] = Header(default=None),
    x_vercel_cron: Optional[str] = Header(default=None),
) -> None:
    if not is_authorized_cron(authorization, x_vercel_cron, settings.cron_secret):
        logger.warning("Rejected unauthorized cron request")
        raise AuthenticationError()
