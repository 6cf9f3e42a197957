"""
Pytest configuration and fixtures for seolocal tests.
"""
import asyncio
from datetime import datetime, timezone

import pytest
from bs4 import BeautifulSoup

from seolocal.integrations.storage import LocalAuditStore
from seolocal.schemas.audit import (
    AuditConfig,
    CheckResult,
    LocalPageAnalysis,
    PageLink,
    PageStatus,
)
from seolocal.services.audit_processor import AuditProcessor
from seolocal.services.crawler import CrawlConfig
from seolocal.services.renderer import RenderBackend, RenderedPage
from seolocal.services.robots import RobotsRules

from tests.fixtures.sample_pages import BASE_URL


# ============================================================================
# Render Backend Fakes
# ============================================================================

class FakePage(RenderedPage):
    """Serves pages from an in-memory site map."""

    def __init__(self, backend: "FakeRenderBackend"):
        self.backend = backend
        self.url = ""
        self.html = ""
        self.closed = False

    async def goto(self, url: str, timeout_ms: int) -> int:
        self.url = url
        self.backend.requested.append(url)
        if self.backend.delay:
            await asyncio.sleep(self.backend.delay)
        if url in self.backend.failing:
            raise ConnectionError(f"net::ERR_CONNECTION_REFUSED at {url}")
        if url not in self.backend.pages:
            self.html = "<html><head><title>Not Found</title></head><body>404</body></html>"
            return 404
        self.html = self.backend.pages[url]
        return 200

    async def content(self) -> str:
        await self._stall_if_configured()
        return self.html

    async def anchor_hrefs(self) -> list[str]:
        await self._stall_if_configured()
        soup = BeautifulSoup(self.html, "lxml")
        return [a["href"] for a in soup.find_all("a", href=True) if a["href"]]

    async def close(self) -> None:
        self.closed = True
        self.backend.closed_pages += 1

    async def _stall_if_configured(self):
        if self.url in self.backend.stalled:
            await asyncio.Event().wait()


class FakeRenderBackend(RenderBackend):
    """In-memory render backend keyed by normalized URL."""

    def __init__(
        self,
        pages: dict[str, str] | None = None,
        failing: set[str] | None = None,
        fail_on_start: bool = False,
        delay: float = 0,
        stalled: set[str] | None = None,
    ):
        self.pages = pages or {}
        self.failing = failing or set()
        self.fail_on_start = fail_on_start
        self.delay = delay
        self.stalled = stalled or set()
        self.started = False
        self.stopped = False
        self.requested: list[str] = []
        self.opened_pages = 0
        self.closed_pages = 0

    async def start(self) -> None:
        if self.fail_on_start:
            raise RuntimeError("Executable doesn't exist at /ms-playwright/chromium")
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    async def new_page(self) -> RenderedPage:
        self.opened_pages += 1
        return FakePage(self)


@pytest.fixture
def fake_backend_factory():
    """Build a FakeRenderBackend for a site map."""
    def factory(pages: dict[str, str] | None = None, **kwargs) -> FakeRenderBackend:
        return FakeRenderBackend(pages, **kwargs)
    return factory


@pytest.fixture
def allow_all_robots() -> RobotsRules:
    return RobotsRules.allow_all()


@pytest.fixture
def crawl_config() -> CrawlConfig:
    """Small, fast crawl configuration."""
    return CrawlConfig(
        concurrency=2,
        max_pages=0,
        max_depth=0,
        ignore_patterns=[],
        queue_size=100,
        navigation_timeout_seconds=2,
    )


# ============================================================================
# Storage Fixtures
# ============================================================================

@pytest.fixture
def store(tmp_path) -> LocalAuditStore:
    return LocalAuditStore(tmp_path / "audits")


@pytest.fixture
def processor(store) -> AuditProcessor:
    return AuditProcessor(store)


@pytest.fixture
def audit_config() -> AuditConfig:
    return AuditConfig(port=3000, concurrency=2, max_pages=0, max_depth=0, ignore_patterns=[])


@pytest.fixture
def make_page():
    """Factory for stored page records."""
    def factory(
        path: str = "/",
        score: float | None = 80.0,
        title: str = "A reasonably descriptive page title",
        description: str = "A meta description",
        h1_count: int = 1,
        failed_messages: list[str] | None = None,
        passed: int = 0,
        status: PageStatus = PageStatus.COMPLETED,
        links: list[str] | None = None,
    ) -> LocalPageAnalysis:
        checks = {}
        for i in range(passed):
            checks[f"passed_{i}"] = CheckResult(passed=True, value=True, message="ok", weight=10)
        for i, message in enumerate(failed_messages or []):
            checks[f"failed_{i}"] = CheckResult(passed=False, value=False, message=message, weight=50 + i)

        return LocalPageAnalysis(
            id=f"page-{path}",
            url=f"{BASE_URL}{path}",
            status_code=200,
            analysis_status=status,
            seo_score=score,
            analyzed_at=datetime.now(timezone.utc),
            title=title,
            meta_description=description,
            h1="Heading" if h1_count else "",
            h1_count=h1_count,
            issues_count=len(failed_messages or []),
            checks=checks,
            internal_links=[PageLink(url=f"{BASE_URL}{link}") for link in (links or [])],
        )
    return factory
