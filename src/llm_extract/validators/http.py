"""External HTTP validator.

The candidate is POSTed as JSON. Any 2xx response accepts it; other statuses
reject it, with the response body used as feedback for the model.
"""

from __future__ import annotations

from collections.abc import Callable
import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from llm_extract.constants import DEFAULT_HTTP_TIMEOUT
from llm_extract.core.exceptions import HttpValidationError
from llm_extract.core.types import to_jsonable

if TYPE_CHECKING:
    from llm_extract.core.cancellation import CancellationToken

logger = logging.getLogger(__name__)

type HttpClientFactory = Callable[[float], httpx.AsyncClient]


def default_client_factory(timeout: float) -> httpx.AsyncClient:
    """Build a plain client with the configured timeout."""
    return httpx.AsyncClient(timeout=timeout)


async def run_http_validator(
    data: Any,
    url: str,
    cancel_token: CancellationToken | None = None,
    *,
    timeout: float = DEFAULT_HTTP_TIMEOUT,
    client_factory: HttpClientFactory = default_client_factory,
) -> None:
    """POST `data` to `url` and raise unless the status is 2xx.

    Raises:
        HttpValidationError: On a non-2xx response.
        AbortError: If `cancel_token` fires first.
        httpx.HTTPError: On transport failures.
    """
    async with client_factory(timeout) as client:
        request = client.post(url, json=to_jsonable(data))
        if cancel_token is None:
            response = await request
        else:
            response = await cancel_token.guard(request)

    logger.debug("Validator endpoint %s returned %d", url, response.status_code)
    if response.is_success:
        return
    message = _error_message(response.text) or (
        f"Validator returned status {response.status_code}"
    )
    raise HttpValidationError(message, url, response.status_code)


def _error_message(body: str) -> str:
    """Prefer a JSON `error` or `message` string; fall back to the raw body."""
    if not body:
        return ""
    try:
        parsed = json.loads(body)
    except ValueError:
        return body
    if isinstance(parsed, dict):
        for field in ("error", "message"):
            if isinstance(parsed.get(field), str):
                return parsed[field]
    return body
