"""Health check for the external autocomplete API."""

import httpx

from destinations.config import AUTOCOMPLETE_TIMEOUT_S, AUTOCOMPLETE_URL
from destinations.logging_config import logger
from destinations.models.health import ServiceStatus


async def is_autocomplete_api_available() -> ServiceStatus:
    """Check the external autocomplete API for availability.

    Returns:
        ServiceStatus.available if the API answers 200 with a RESULTS array.
    """
    try:
        async with httpx.AsyncClient(timeout=AUTOCOMPLETE_TIMEOUT_S) as client:
            response = await client.get(
                AUTOCOMPLETE_URL,
                params={"query": ""},
                headers={"Accept": "application/json"},
            )
        if response.status_code == 200 and isinstance(
            response.json().get("RESULTS"), list
        ):
            return ServiceStatus.available
    except (httpx.HTTPError, ValueError, RecursionError, AttributeError) as exc:
        logger.error("AUTOCOMPLETE_API_UNAVAILABLE", error=str(exc))
        return ServiceStatus.not_available
    logger.error("AUTOCOMPLETE_API_UNAVAILABLE", status=response.status_code)
    return ServiceStatus.not_available
