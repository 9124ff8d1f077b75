"""Autocomplete service integration and city filtering."""

import json
import re

import httpx
from prometheus_client import Counter

from destinations.config import (
    AUTOCOMPLETE_TIMEOUT_S,
    AUTOCOMPLETE_URL,
    MAX_SEARCH_LENGTH,
)
from destinations.logging_config import logger
from destinations.models.city import City

CITY_TYPE = "city"
EXCLUDED_NAME_SUBSTRING = "School"
CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

UPSTREAM_REQUESTS = Counter(
    "autocomplete_upstream_requests_total",
    "Requests made to the autocomplete API",
    ["outcome"],
)


class AutocompleteServiceError(Exception):
    """Base exception for autocomplete service failures."""
    pass


class UpstreamUnavailableError(AutocompleteServiceError):
    """Raised on network failure or a non-200 status from the autocomplete API."""
    pass


class UpstreamMalformedError(AutocompleteServiceError):
    """Raised when the autocomplete API payload cannot be understood."""
    pass


class InvalidInputError(AutocompleteServiceError):
    """Raised when a search string cannot be sent upstream."""
    pass


def _request(query: str) -> httpx.Response:
    """Execute the upstream GET and check its status.

    Args:
        query: Value for the ``query`` parameter; httpx handles the encoding.

    Returns:
        The HTTP response, guaranteed to have status 200.

    Raises:
        UpstreamUnavailableError: On transport errors, timeouts, or any
            status other than 200.
    """
    try:
        response = httpx.get(
            AUTOCOMPLETE_URL,
            params={"query": query},
            headers={"Accept": "application/json"},
            timeout=AUTOCOMPLETE_TIMEOUT_S,
        )
    except httpx.RequestError as exc:
        UPSTREAM_REQUESTS.labels(outcome="request_failed").inc()
        logger.error("AUTOCOMPLETE_REQUEST_FAILED", query=query, error=str(exc))
        raise UpstreamUnavailableError("Autocomplete service unreachable") from exc

    logger.info("AUTOCOMPLETE_RESPONSE", query=query, status=response.status_code)
    if response.status_code != 200:
        UPSTREAM_REQUESTS.labels(outcome="bad_status").inc()
        logger.error(
            "AUTOCOMPLETE_BAD_STATUS", query=query, status=response.status_code
        )
        raise UpstreamUnavailableError(
            f"Autocomplete service returned HTTP {response.status_code}"
        )
    return response


def fetch_locations(query: str) -> list:
    """Fetch the raw ``RESULTS`` list for a query.

    Args:
        query: Search string to send upstream.

    Returns:
        The upstream ``RESULTS`` array, unfiltered.

    Raises:
        UpstreamUnavailableError: If the request fails.
        UpstreamMalformedError: If the body is not JSON with a ``RESULTS`` array.
    """
    response = _request(query)
    try:
        data = json.loads(response.content.decode("utf-8"))
    except (UnicodeDecodeError, ValueError, RecursionError) as exc:
        UPSTREAM_REQUESTS.labels(outcome="bad_payload").inc()
        logger.error("AUTOCOMPLETE_BAD_PAYLOAD", query=query, error=str(exc))
        raise UpstreamMalformedError("Autocomplete response is not valid JSON") from exc

    results = data.get("RESULTS") if isinstance(data, dict) else None
    if not isinstance(results, list):
        UPSTREAM_REQUESTS.labels(outcome="bad_payload").inc()
        logger.error(
            "AUTOCOMPLETE_BAD_PAYLOAD", query=query, error="missing RESULTS array"
        )
        raise UpstreamMalformedError("Autocomplete response has no RESULTS array")

    UPSTREAM_REQUESTS.labels(outcome="ok").inc()
    return results


def filter_cities(results: list, excluded_substring: str | None = None) -> list[City]:
    """Keep city-type results, in order, as City models.

    Elements that are not objects, lack ``type``, or whose ``name`` is not
    a string or number are skipped rather than failing the whole list.

    Args:
        results: Upstream ``RESULTS`` entries.
        excluded_substring: Drop cities whose name contains this text.

    Returns:
        The surviving cities in upstream order.
    """
    cities = []
    for index, location in enumerate(results):
        if not isinstance(location, dict) or "type" not in location:
            logger.warning("AUTOCOMPLETE_SKIPPED_RESULT", index=index)
            continue
        if str(location["type"]) != CITY_TYPE:
            continue
        name = location.get("name")
        # bool is an int subclass; str(True) would not match JSON's "true"
        if not isinstance(name, (str, int, float)) or isinstance(name, bool):
            logger.warning("AUTOCOMPLETE_SKIPPED_RESULT", index=index)
            continue
        name = str(name)
        if not name:
            continue
        if excluded_substring and excluded_substring in name:
            continue
        cities.append(City(city_name=name))
    return cities


def validate_search_string(search_string: str | None) -> str:
    """Normalize a search string and reject values unfit for a query parameter.

    Args:
        search_string: Raw path value, possibly None.

    Returns:
        The search string, or an empty string for None.

    Raises:
        InvalidInputError: On control characters or an over-long value.
    """
    search_string = search_string or ""
    if len(search_string) > MAX_SEARCH_LENGTH:
        logger.warning(
            "INVALID_SEARCH_STRING", reason="too_long", length=len(search_string)
        )
        raise InvalidInputError(
            f"Search string longer than {MAX_SEARCH_LENGTH} characters"
        )
    if CONTROL_CHARS.search(search_string):
        logger.warning("INVALID_SEARCH_STRING", reason="control_characters")
        raise InvalidInputError("Search string contains control characters")
    return search_string


def list_cities() -> list[City]:
    """Return cities for an empty query, excluding names containing "School"."""
    return filter_cities(fetch_locations(""), excluded_substring=EXCLUDED_NAME_SUBSTRING)


def search_cities(search_string: str | None) -> list[City]:
    """Return every city-type suggestion for a search string.

    Args:
        search_string: Text to autocomplete; None is treated as empty.

    Returns:
        Cities in upstream order, with no name-based exclusion.
    """
    query = validate_search_string(search_string)
    return filter_cities(fetch_locations(query))
