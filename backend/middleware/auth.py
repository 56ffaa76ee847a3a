"""
Shared-secret guards for operator endpoints.

  - X-Dev-Secret   guards the development-only mark-paid route. The route
                   does not exist (404) unless DEV_SECRET is set outside
                   production.
  - X-Admin-Key    guards the read-only order listing. Disabled (404) when
                   ADMIN_API_KEY is empty.

Secrets are compared in constant time.
"""
import hmac
import logging
from typing import Optional

from fastapi import Depends, Header

from config import Settings, get_settings
from domain.errors import NotFoundError, UnauthorizedError

logger = logging.getLogger(__name__)


def secrets_match(provided: Optional[str], expected: str) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def require_dev_secret(
    x_dev_secret: Optional[str] = Header(None, alias="X-Dev-Secret"),
    settings: Settings = Depends(get_settings),
) -> None:
    if not settings.dev_routes_enabled:
        raise NotFoundError("Route", "dev")
    if not secrets_match(x_dev_secret, settings.dev_secret):
        logger.warning("Rejected dev request with missing or wrong X-Dev-Secret")
        raise UnauthorizedError("Invalid dev secret")


async def require_admin_key(
    x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key"),
    settings: Settings = Depends(get_settings),
) -> None:
    if not settings.admin_api_key:
        raise NotFoundError("Route", "orders")
    if not secrets_match(x_admin_key, settings.admin_api_key):
        logger.warning("Rejected admin request with missing or wrong X-Admin-Key")
        raise UnauthorizedError("Invalid admin key")
