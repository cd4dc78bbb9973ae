"""
HTTP client shared by all upstream providers.
"""
import logging
import threading
from typing import Any, Dict, Optional

import requests

from city_explorer.cache.errors import UpstreamError
from config.settings import settings

logger = logging.getLogger("providers.client")

# Global semaphore to limit concurrent upstream requests across all providers
_api_semaphore = threading.Semaphore(settings.max_concurrent_requests)


def get_json(
    url: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> Any:
    """
    GET a URL and decode its JSON body.

    Args:
        url: Full request URL
        params: Query parameters
        headers: Extra request headers
        timeout: Seconds before giving up (defaults to settings)

    Returns:
        Decoded JSON payload

    Raises:
        UpstreamError: On connection failure, timeout, HTTP error status,
            or a body that is not JSON
    """
    timeout = timeout if timeout is not None else settings.request_timeout_seconds
    with _api_semaphore:
        try:
            response = requests.get(url, params=params, headers=headers, timeout=timeout)
            response.raise_for_status()
            return response.json()
        except requests.Timeout as e:
            logger.warning(f"Upstream timeout after {timeout}s: {url}")
            raise UpstreamError(f"Timed out after {timeout}s") from e
        except requests.RequestException as e:
            # Covers HTTP errors and invalid JSON bodies
            logger.warning(f"Upstream request failed: {url} - {e}")
            raise UpstreamError(str(e)) from e
