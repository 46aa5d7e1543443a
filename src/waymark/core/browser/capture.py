"""
Page Capture

Builds an Observation from a live Playwright page. Individual reads that fail
(a navigation racing the capture, a detached frame) degrade to None rather
than failing the whole capture.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from playwright.async_api import Page

from ..execution.retry import RetryOptions, with_retry
from ..state.observation import ArtifactRefs, Observation

logger = logging.getLogger(__name__)

CAPTURE_RETRY = RetryOptions(max_attempts=3, base_delay=0.5, max_delay=2.0)


async def _safe_read(label: str, read: Callable[[], Awaitable[Any]],
                     retry: Optional[RetryOptions] = None) -> Optional[Any]:
    try:
        return await with_retry(read, retry or CAPTURE_RETRY)
    except Exception as e:
        logger.warning(f"Could not read {label} from page: {e}")
        return None


async def capture_observation(page: Page, error: Optional[str] = None,
                              artifacts: Optional[ArtifactRefs] = None,
                              retry: Optional[RetryOptions] = None) -> Observation:
    """
    Capture the current page as an Observation.

    Args:
        page: Playwright page to read from
        error: Error text from the action that led here, if any
        artifacts: References to files saved for this capture
        retry: Retry policy for the individual page reads

    Returns:
        Observation with url, title, html and aria snapshot; headings are
        extracted from the html
    """
    url = page.url
    title = await _safe_read('title', page.title, retry)
    html = await _safe_read('content', page.content, retry)
    aria_snapshot = await _safe_read('aria snapshot', lambda: page.locator('body').aria_snapshot(), retry)

    observation = Observation(
        url=url,
        full_url=url,
        title=title,
        html=html,
        aria_snapshot=aria_snapshot,
        artifacts=artifacts,
        error=error
    )
    logger.debug(f"📸 Captured {observation.fingerprint()}")
    return observation
