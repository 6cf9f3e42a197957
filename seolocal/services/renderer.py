"""
seolocal render backend

Headless browser boundary used by the crawler. The crawler only needs to
navigate with a timeout, read the final status code, read the rendered HTML
and enumerate anchor hrefs; anything able to do that can stand in for the
Playwright implementation below.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from seolocal.config import settings

logger = logging.getLogger(__name__)


@dataclass
class RenderConfig:
    """Configuration for the Playwright renderer."""
    browser_type: str = "chromium"  # chromium, firefox, webkit
    headless: bool = True
    wait_until: str = "load"  # load, domcontentloaded, networkidle
    viewport_width: int = 1920
    viewport_height: int = 1080
    user_agent: str = "seolocal/0.1 (+local SEO audit)"
    block_resources: list[str] = field(default_factory=lambda: ["font", "media"])
    ignore_https_errors: bool = True

    @classmethod
    def from_settings(cls) -> "RenderConfig":
        return cls(
            browser_type=settings.BROWSER_TYPE,
            headless=settings.HEADLESS,
            user_agent=settings.USER_AGENT,
        )


class RenderedPage(ABC):
    """A single browser tab."""

    @abstractmethod
    async def goto(self, url: str, timeout_ms: int) -> int:
        """Navigate and return the HTTP status (0 when there was no response)."""

    @abstractmethod
    async def content(self) -> str:
        pass

    @abstractmethod
    async def anchor_hrefs(self) -> list[str]:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class RenderBackend(ABC):
    """Abstract headless-render backend."""

    @abstractmethod
    async def start(self) -> None:
        pass

    @abstractmethod
    async def stop(self) -> None:
        pass

    @abstractmethod
    async def new_page(self) -> RenderedPage:
        pass


class PlaywrightPage(RenderedPage):
    def __init__(self, page: Page, wait_until: str):
        self._page = page
        self._wait_until = wait_until

    async def goto(self, url: str, timeout_ms: int) -> int:
        response = await self._page.goto(url, timeout=timeout_ms, wait_until=self._wait_until)
        return response.status if response else 0

    async def content(self) -> str:
        return await self._page.content()

    async def anchor_hrefs(self) -> list[str]:
        hrefs = await self._page.eval_on_selector_all(
            "a",
            "els => els.map(el => el.getAttribute('href'))",
        )
        return [h for h in hrefs if h]

    async def close(self) -> None:
        await self._page.close()


class PlaywrightRenderer(RenderBackend):
    """
    Headless browser renderer.

    Uses Playwright to render pages so the audit sees the DOM after JS ran.
    One browser context is shared by every tab the crawler opens.
    """

    def __init__(self, config: RenderConfig | None = None):
        self.config = config or RenderConfig.from_settings()
        self._playwright = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    async def start(self):
        if self._context is not None:
            return

        logger.info(f"Launching headless {self.config.browser_type} for rendering")
        self._playwright = await async_playwright().start()

        launcher = getattr(self._playwright, self.config.browser_type)
        self._browser = await launcher.launch(headless=self.config.headless)
        self._context = await self._browser.new_context(
            viewport={
                "width": self.config.viewport_width,
                "height": self.config.viewport_height,
            },
            user_agent=self.config.user_agent,
            ignore_https_errors=self.config.ignore_https_errors,
        )

        if self.config.block_resources:
            await self._context.route("**/*", self._block_heavy_resources)

    async def stop(self):
        """Close context, browser and driver; safe to call twice."""
        context, browser, driver = self._context, self._browser, self._playwright
        self._context = self._browser = self._playwright = None

        if context is not None:
            await context.close()
        if browser is not None:
            await browser.close()
        if driver is not None:
            await driver.stop()
            logger.info("Render backend shut down")

    async def new_page(self) -> RenderedPage:
        if self._context is None:
            await self.start()
        tab = await self._context.new_page()
        return PlaywrightPage(tab, self.config.wait_until)

    async def _block_heavy_resources(self, route):
        if route.request.resource_type in self.config.block_resources:
            await route.abort()
            return
        await route.continue_()
