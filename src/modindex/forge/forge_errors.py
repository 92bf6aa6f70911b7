from typing import Optional

import httpx

from modindex.main.exceptions import ForgeError, RateLimitedError, UpstreamError


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    if response.status_code != 403:
        return False
    if response.headers.get("x-ratelimit-remaining") == "0":
        return True
    return "rate limit" in response.text.lower()


def raise_for_forge_status(response: httpx.Response, action: str) -> None:
    """Map an unsuccessful forge response to the matching error kind.

    Raises:
        RateLimitedError: The forge asked us to slow down.
        UpstreamError: The forge failed on its side (5xx).
        ForgeError: The request itself was rejected (bad credentials, 4xx).
    """
    status = response.status_code
    if status < 400:
        return

    if is_rate_limited(response):
        raise RateLimitedError(
            f"Rate limited by forge while {action} (HTTP {status})",
            retry_after=_retry_after(response),
        )

    if status >= 500:
        raise UpstreamError(f"Forge failed while {action} (HTTP {status})")

    raise ForgeError(f"Forge rejected request while {action} (HTTP {status})")
