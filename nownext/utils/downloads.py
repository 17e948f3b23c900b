"""
Download utilities

Fetches the XMLTV document into memory with retry logic.
"""
import asyncio
import logging

import httpx

from nownext.exceptions import FetchError
from nownext.utils.logging_helpers import sanitize_url_for_logging


logger = logging.getLogger(__name__)


async def download_document(
    url: str,
    *,
    timeout: float = 20.0,
    max_retries: int = 3,
    backoff_factor: float = 2.0,
    transport: httpx.AsyncBaseTransport | None = None
) -> bytes:
    """
    Download a document from URL with exponential backoff retry logic

    Retries on transient network errors (timeouts, connection errors) and 5xx.
    Does NOT retry on 4xx HTTP errors (client errors) or malformed URLs.

    Args:
        url: URL to download from
        timeout: HTTP timeout in seconds
        max_retries: Maximum number of attempts
        backoff_factor: Exponential backoff multiplier (wait = backoff_factor ^ attempt)
        transport: Optional httpx transport (tests inject a MockTransport)

    Returns:
        Response body

    Raises:
        FetchError: If download fails after all retries
    """
    safe_url = sanitize_url_for_logging(url)
    if not url or not url.lower().startswith(("http://", "https://")):
        raise FetchError(f"EPG source URL must be HTTP/HTTPS: {safe_url}")

    logger.info(f"Downloading XMLTV document from {safe_url}...")

    attempts = max(1, max_retries)
    last_error: Exception | None = None

    for attempt in range(attempts):
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True) as client:
                response = await client.get(url)
                response.raise_for_status()

                content = response.content
                logger.info(f"Downloaded {len(content) / (1024 * 1024):.2f} MB from {safe_url}")
                return content

        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            logger.error(f"Invalid EPG source URL {safe_url}: {e}")
            raise FetchError(f"Invalid EPG source URL: {safe_url}") from e

        except (httpx.TimeoutException, httpx.TransportError) as e:
            # Transient network errors - retry
            last_error = e
            if attempt < attempts - 1:
                wait_time = backoff_factor ** attempt
                logger.warning(
                    f"Download attempt {attempt + 1}/{attempts} failed (transient error): {type(e).__name__}. "
                    f"Retrying in {wait_time:.1f}s..."
                )
                await asyncio.sleep(wait_time)
            else:
                logger.error(f"Download failed after {attempts} attempts (transient error)")

        except httpx.HTTPStatusError as e:
            # HTTP errors - don't retry on 4xx (client error), retry on 5xx (server error)
            if 400 <= e.response.status_code < 500:
                logger.error(f"HTTP {e.response.status_code} (client error) for {safe_url}")
                raise FetchError(f"HTTP {e.response.status_code} fetching {safe_url}") from e

            last_error = e
            if attempt < attempts - 1:
                wait_time = backoff_factor ** attempt
                logger.warning(
                    f"Download attempt {attempt + 1}/{attempts} failed "
                    f"(HTTP {e.response.status_code} server error). "
                    f"Retrying in {wait_time:.1f}s..."
                )
                await asyncio.sleep(wait_time)
            else:
                logger.error(f"Download failed after {attempts} attempts (HTTP {e.response.status_code})")

        except httpx.HTTPError as e:
            logger.error(f"HTTP error fetching {safe_url}: {e}")
            raise FetchError(f"Failed to fetch {safe_url}: {e}") from e

    raise FetchError(f"Failed to download {safe_url} after {attempts} attempts") from last_error
