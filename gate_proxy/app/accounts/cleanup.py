"""
Best-effort upstream cleanup calls.

Logout and account removal on the upstream are advisory: the tombstone is
the source of truth, so these calls log their failures and never raise.
"""

import logging
from typing import Dict

from ..errors import UpstreamUnavailableError
from ..proxy.forwarder import UpstreamForwarder, UpstreamRequest

logger = logging.getLogger(__name__)


async def best_effort_call(
    forwarder: UpstreamForwarder,
    method: str,
    path: str,
    headers: Dict[str, str],
    action: str,
) -> bool:
    """
    Send a bodyless request upstream and report whether it succeeded.

    Args:
        forwarder: Upstream forwarder
        method: HTTP method
        path: Upstream path
        headers: Headers to send (credentials and host)
        action: Short label used in logs (e.g. "logout")

    Returns:
        True on a 2xx answer, False otherwise
    """
    request = UpstreamRequest(method=method, url=forwarder.url_for(path), headers=headers)
    try:
        response = await forwarder.send(request)
    except UpstreamUnavailableError as e:
        logger.warning(
            f"Upstream {action} failed, ignoring",
            extra={"action": action, "endpoint": e.endpoint},
        )
        return False

    if not response.is_success:
        logger.warning(
            f"Upstream {action} answered {response.status_code}, ignoring",
            extra={"action": action, "status_code": response.status_code},
        )
        return False

    logger.debug(f"Upstream {action} succeeded")
    return True
