"""
Browser Navigation Events

Feeds main-frame navigations from a Playwright page into the state registry so
that moves the agent did not initiate (redirects, client-side routing) still
show up as transitions.
"""

import logging
from typing import Any, Callable, List, Optional, Tuple

from playwright.async_api import Frame, Page

from ..state.models import Trigger
from ..state.registry import StateRegistry

logger = logging.getLogger(__name__)


class NavigationWatcher:
    """Records main-frame navigations as NAVIGATION transitions."""

    def __init__(self, registry: StateRegistry):
        self.registry = registry
        self._attached: List[Tuple[Page, Callable[[Frame], Any]]] = []

    def attach_to_page(self, page: Page):
        """Attach the navigation handler to a page."""
        async def handle(frame: Frame):
            await self._handle_frame_navigated(page, frame)

        page.on('framenavigated', handle)
        self._attached.append((page, handle))
        logger.info("Navigation watcher attached to page")

    def detach(self):
        """Remove the handler from every attached page."""
        for page, handle in self._attached:
            try:
                page.remove_listener('framenavigated', handle)
            except Exception as e:
                logger.error(f"Error detaching navigation watcher: {e}")
        self._attached.clear()

    async def _handle_frame_navigated(self, page: Page, frame: Frame):
        if frame != page.main_frame:
            return

        try:
            title: Optional[str] = await page.title()
        except Exception as e:
            logger.debug(f"Title unavailable after navigation: {e}")
            title = None

        try:
            self.registry.update_from_basic(frame.url, title, Trigger.NAVIGATION)
        except Exception as e:
            logger.error(f"Error recording navigation to {frame.url}: {e}")
