"""
Shared HTTP helpers for carrier and geocoder clients

Every outbound call goes through ``request_json`` or ``request_text`` so that
HTTP failures surface as the same error types regardless of the carrier.
"""

import json
import logging
from typing import Any, Collection, Dict, Optional

import httpx

from .errors import AuthenticationError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

AUTH_STATUSES = (401, 403)


async def _send(
    method: str,
    url: str,
    *,
    provider: str,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    json_body: Any = None,
    data: Optional[Dict[str, Any]] = None,
    auth: Optional[httpx.Auth] = None,
    timeout: float = DEFAULT_TIMEOUT,
    not_found: Collection[int] = (),
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[httpx.Response]:
    try:
        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json_body,
                data=data,
                auth=auth,
                timeout=timeout,
            )
    except httpx.HTTPError as e:
        raise TransportError(f"{provider} request failed: {e}", provider=provider) from e

    status = response.status_code
    if status in not_found:
        logger.info(f"{provider} returned {status} for {method} {response.request.url.path}")
        return None

    if status in AUTH_STATUSES:
        raise AuthenticationError(
            f"{provider} rejected credentials: {status} - {response.text[:200]}",
            status_code=status,
            provider=provider,
        )

    if not response.is_success:
        raise TransportError(
            f"{provider} HTTP error: {status} - {response.text[:200]}",
            status_code=status,
            provider=provider,
        )

    return response


async def request_json(method: str, url: str, *, provider: str, **kwargs) -> Optional[Any]:
    """
    Send a request and decode the JSON body.

    Args:
        method: HTTP method
        url: Absolute URL
        provider: Provider name, used in errors and logs
        **kwargs: headers, params, json_body, data, auth, timeout,
            not_found (statuses that mean "no such shipment"), transport

    Returns:
        Decoded JSON, or None for a declared not-found status

    Raises:
        AuthenticationError: 401/403
        TransportError: network failure, other non-2xx, or undecodable body
    """
    response = await _send(method, url, provider=provider, **kwargs)
    if response is None:
        return None

    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise TransportError(
            f"{provider} returned malformed JSON: {e}",
            status_code=response.status_code,
            provider=provider,
        ) from e


async def request_text(method: str, url: str, *, provider: str, **kwargs) -> Optional[str]:
    """Same as ``request_json`` but returns the body as text."""
    response = await _send(method, url, provider=provider, **kwargs)
    if response is None:
        return None
    return response.text
