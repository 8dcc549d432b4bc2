"""Provider health checks: ping each API before convening the council."""

import asyncio
import logging

from council.gateway import BackendGateway
from council.providers.base import BackendError

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(gateway: BackendGateway, member_id: str) -> tuple[str, bool, str]:
    """Ping a single member. Returns (member_id, ok, error_message)."""
    try:
        await gateway.invoke(member_id, _PING_PROMPT, _TIMEOUT_SEC, stage=0)
        return member_id, True, ""
    except BackendError as exc:
        logger.debug("Health check failed for %s: %s", member_id, exc)
        return member_id, False, str(exc)


async def run_health_checks(
    gateway: BackendGateway,
    member_ids: list[str],
) -> dict[str, tuple[bool, str]]:
    """Ping all members in parallel.

    Returns:
        Dict mapping member id -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(gateway, m) for m in member_ids))
    return {member_id: (ok, err) for member_id, ok, err in results}
