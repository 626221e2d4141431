"""Resilient HTTP fetch for remote build assets.

Downloads node headers and import libraries with a small, flat retry policy:
a fixed number of attempts with a constant delay between them. Both non-200
responses and transport errors are retried; once the budget is spent a
NetworkError naming the URL is raised.
"""

import logging
import time
from enum import Enum
from typing import Union

import requests

from ..errors import NetworkError
from ..output import log

logger = logging.getLogger(__name__)

# Retry configuration
DEFAULT_RETRIES = 3
RETRY_DELAY = 2.0  # seconds, constant between attempts
REQUEST_TIMEOUT = 60  # seconds per attempt


class ResponseKind(Enum):
    """How the response body is returned."""

    BUFFER = "buffer"
    TEXT = "text"


def fetch(url: str, response_kind: ResponseKind, retries: int = DEFAULT_RETRIES) -> Union[bytes, str]:
    """Fetch a URL, retrying on bad status codes and transport failures.

    Args:
        url: Resource to download
        response_kind: BUFFER returns bytes, TEXT returns decoded text
        retries: Total number of attempts

    Returns:
        Response body as bytes or str depending on response_kind

    Raises:
        NetworkError: If every attempt failed
    """
    for attempt in range(1, retries + 1):
        log(f"downloading: {url}")
        try:
            response = requests.get(url, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            log(f"request failed for some reason: {e}")
            logger.debug("Attempt %d/%d for %s raised", attempt, retries, url, exc_info=True)
        else:
            if response.status_code == 200:
                log("response came back OK")
                if response_kind == ResponseKind.TEXT:
                    return response.text
                return response.content
            log(f"got bad status code: {response.status_code}")

        if attempt < retries:
            time.sleep(RETRY_DELAY)

    raise NetworkError(url, retries)
