"""Environment-driven settings for the destinations service."""

import os

AUTOCOMPLETE_URL = os.getenv(
    "AUTOCOMPLETE_URL", "http://autocomplete.wunderground.com/aq"
)
AUTOCOMPLETE_TIMEOUT_S = float(os.getenv("AUTOCOMPLETE_TIMEOUT_S", "5"))
MAX_SEARCH_LENGTH = int(os.getenv("MAX_SEARCH_LENGTH", "100"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
