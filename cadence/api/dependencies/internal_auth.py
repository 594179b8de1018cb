# cadence/api/dependencies/internal_auth.py
from typing import Optional

from fastapi import Header, HTTPException, status

from cadence.core.config import get_settings


async def verify_internal_api_key(
    internal_api_key: Optional[str] = Header(
        default=None,
        alias="X-Internal-Api-Key",
        description="Internal API key required for /internal endpoints outside local/test.",
    ),
) -> None:
    """
    Guard for the cron-triggered /internal endpoints.

    Rules
    -----
    - APP_ENV in ("local", "test"): the key is optional, but if
      INTERNAL_API_KEY is configured the header must match it.
    - Any other APP_ENV: INTERNAL_API_KEY must be configured (500 otherwise)
      and the header must match it (401 otherwise).
    """
    settings = get_settings()
    env = (settings.APP_ENV or "local").lower()
    expected = settings.INTERNAL_API_KEY

    if not expected:
        if env in ("local", "test"):
            return
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="INTERNAL_API_KEY not configured for this environment.",
        )

    if internal_api_key != expected:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing internal API key.",
        )
