"""
seolocal Crawler Service

Site crawler for local SEO audits with:
- Headless rendering through a pluggable backend (Playwright by default)
- Bounded worker pool sharing a bounded FIFO frontier
- Robots.txt respect (longest-match rules)
- Page cap, depth ceiling and ignore patterns
- Deterministic termination: the crawl ends when every accepted task,
  including the links it discovered, has been processed
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field, asdict

from seolocal.config import settings
from seolocal.core.exceptions import CrawlerSetupError
from seolocal.schemas.audit import AuditConfig
from seolocal.services.renderer import PlaywrightRenderer, RenderBackend, RenderedPage
from seolocal.services.robots import RobotsRules, fetch_robots_txt
from seolocal.services.urls import (
    is_same_host,
    matches_ignore_pattern,
    normalize_url,
    resolve_url,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageResult:
    url: str
    content: str
    depth: int
    status_code: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CrawlTask:
    url: str
    depth: int


@dataclass
class CrawlConfig:
    concurrency: int = 4
    max_pages: int = 0  # 0 = unlimited
    max_depth: int = 0  # 0 = unlimited
    ignore_patterns: list[str] = field(default_factory=list)
    queue_size: int = 100
    navigation_timeout_seconds: float = 15
    robots_timeout_seconds: float = 10
    respect_robots_txt: bool = True
    user_agent: str = "seolocal/0.1 (+local SEO audit)"

    @classmethod
    def from_audit_config(cls, config: AuditConfig) -> "CrawlConfig":
        return cls(
            concurrency=config.concurrency,
            max_pages=config.max_pages,
            max_depth=config.max_depth,
            ignore_patterns=list(config.ignore_patterns),
            queue_size=settings.CRAWL_QUEUE_SIZE,
            navigation_timeout_seconds=settings.NAVIGATION_TIMEOUT_SECONDS,
            robots_timeout_seconds=settings.ROBOTS_TIMEOUT_SECONDS,
            user_agent=settings.USER_AGENT,
        )


@dataclass(frozen=True)
class CrawlStats:
    visited: int
    queued: int
    results: int
    in_flight: int


class SiteCrawler:
    """Bounded-concurrency crawler driving a headless render backend."""

    def __init__(
        self,
        base_url: str,
        config: CrawlConfig | None = None,
        backend: RenderBackend | None = None,
        robots: RobotsRules | None = None,
    ):
        self.base_url = normalize_url(base_url)
        self.config = config or CrawlConfig()
        self.backend = backend

        # Visited set, page count and results share one lock
        self._state_lock = threading.Lock()
        self.visited_urls: set[str] = set()
        self.results: list[PageResult] = []
        self.page_count = 0
        self._active_workers = 0

        # Frontier and its open/closed flag
        self._queue_lock = threading.Lock()
        self._queue: asyncio.Queue | None = None
        self._queued_urls: set[str] = set()
        self._queue_open = True

        self._robots_lock = threading.Lock()
        self._robots = robots

        self._cancelled = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None

    async def start(self) -> list[PageResult]:
        """Run the crawl until the frontier drains, the page cap is hit or stop() is called."""
        logger.info(
            f"Starting crawl of {self.base_url} "
            f"(concurrency={self.config.concurrency}, max_pages={self.config.max_pages or 'unlimited'}, "
            f"max_depth={self.config.max_depth or 'unlimited'})"
        )
        start_time = time.time()
        self._loop = asyncio.get_running_loop()

        if self.backend is None:
            self.backend = PlaywrightRenderer()
        try:
            await self.backend.start()
        except Exception as e:
            raise CrawlerSetupError(f"Could not launch render backend: {e}") from e

        try:
            if self._get_robots() is None:
                if self.config.respect_robots_txt:
                    robots = await fetch_robots_txt(
                        self.base_url,
                        timeout=self.config.robots_timeout_seconds,
                        user_agent=self.config.user_agent,
                    )
                else:
                    robots = RobotsRules.allow_all()
                self._set_robots(robots)

            self._queue = asyncio.Queue(maxsize=max(1, self.config.queue_size))
            self._enqueue(CrawlTask(self.base_url, 0))

            workers = [
                asyncio.create_task(self._worker(f"worker-{i}"))
                for i in range(max(1, self.config.concurrency))
            ]

            drained = asyncio.create_task(self._queue.join())
            cancelled = asyncio.create_task(self._cancelled.wait())
            try:
                await asyncio.wait({drained, cancelled}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                self._close_queue()
                for waiter in (drained, cancelled):
                    waiter.cancel()
                for worker in workers:
                    worker.cancel()
                await asyncio.gather(*workers, return_exceptions=True)
        finally:
            await self._stop_backend()

        elapsed = time.time() - start_time
        stats = self.get_stats()
        logger.info(f"Crawl complete: {stats.results} pages in {elapsed:.2f}s ({stats.visited} URLs visited)")
        return self.get_results()

    def stop(self):
        """Request best-effort cancellation; in-progress navigations finish first."""
        self._close_queue()
        loop = self._loop
        if loop is not None and loop.is_running():
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is not loop:
                loop.call_soon_threadsafe(self._cancelled.set)
                return
        self._cancelled.set()

    def get_results(self) -> list[PageResult]:
        with self._state_lock:
            return list(self.results)

    def get_stats(self) -> CrawlStats:
        with self._state_lock:
            visited = len(self.visited_urls)
            results = len(self.results)
            active = self._active_workers
        with self._queue_lock:
            queued = self._queue.qsize() if self._queue is not None else 0
        return CrawlStats(visited=visited, queued=queued, results=results, in_flight=active)

    def should_ignore(self, url: str) -> bool:
        return matches_ignore_pattern(url, self.config.ignore_patterns)

    def is_disallowed_by_robots(self, url: str) -> bool:
        robots = self._get_robots()
        return robots is not None and robots.is_disallowed(url)

    def _get_robots(self) -> RobotsRules | None:
        with self._robots_lock:
            return self._robots

    def _set_robots(self, robots: RobotsRules):
        with self._robots_lock:
            self._robots = robots

    def _page_cap_reached(self) -> bool:
        return self.config.max_pages > 0 and self.page_count >= self.config.max_pages

    def _enqueue(self, task: CrawlTask) -> bool:
        """Add a task to the frontier; a full or closed frontier drops it silently."""
        with self._queue_lock:
            if not self._queue_open or self._queue is None:
                return False
            if task.url in self._queued_urls:
                return False
            try:
                self._queue.put_nowait(task)
            except asyncio.QueueFull:
                logger.debug(f"Frontier full, dropping {task.url}")
                return False
            self._queued_urls.add(task.url)
            return True

    def _close_queue(self):
        with self._queue_lock:
            self._queue_open = False

    async def _stop_backend(self):
        try:
            await self.backend.stop()
        except Exception as e:
            logger.warning(f"Error stopping render backend: {e}")

    async def _worker(self, name: str):
        """Worker that pulls tasks until cancelled."""
        while True:
            task = await self._queue.get()
            with self._state_lock:
                self._active_workers += 1
            try:
                if not self._cancelled.is_set():
                    await self._crawl_page(task)
            except Exception as e:
                logger.error(f"{name} error on {task.url}: {e}")
            finally:
                with self._state_lock:
                    self._active_workers -= 1
                self._queue.task_done()

    async def _crawl_page(self, task: CrawlTask):
        url = normalize_url(task.url)
        depth = task.depth

        with self._state_lock:
            if url in self.visited_urls:
                return
            if self._page_cap_reached():
                return
            if self.should_ignore(url):
                self.visited_urls.add(url)
                logger.debug(f"Ignored by pattern: {url}")
                return
            if self.is_disallowed_by_robots(url):
                self.visited_urls.add(url)
                logger.debug(f"Blocked by robots.txt: {url}")
                return
            self.visited_urls.add(url)
            self.page_count += 1
            cap_reached = self._page_cap_reached()

        if cap_reached:
            logger.info(f"Page cap of {self.config.max_pages} reached, closing frontier")
            self._close_queue()

        page: RenderedPage | None = None
        try:
            page = await self._bounded(self.backend.new_page())
            status_code = await self._bounded(
                page.goto(url, timeout_ms=int(self.config.navigation_timeout_seconds * 1000)),
            )
        except Exception as e:
            logger.warning(f"Navigation failed for {url}: {e!r}")
            self._record(PageResult(url=url, content="", depth=depth, status_code=0))
            if page is not None:
                await self._close_page(page)
            return

        try:
            try:
                content = await self._bounded(page.content())
            except Exception as e:
                logger.debug(f"Could not read content of {url}: {e}")
                content = ""

            self._record(PageResult(url=url, content=content, depth=depth, status_code=status_code))
            logger.debug(f"Fetched {url} (HTTP {status_code}, depth {depth})")

            if self.config.max_depth == 0 or depth < self.config.max_depth:
                await self._discover_links(page, url, depth)
        finally:
            await self._close_page(page)

    async def _discover_links(self, page: RenderedPage, page_url: str, depth: int):
        if self._cancelled.is_set():
            return
        try:
            hrefs = await self._bounded(page.anchor_hrefs())
        except Exception as e:
            logger.debug(f"Could not enumerate links on {page_url}: {e}")
            return

        found = 0
        queued = 0
        for href in hrefs:
            if self._cancelled.is_set():
                return
            absolute = resolve_url(page_url, href)
            if not absolute:
                continue
            link = normalize_url(absolute)
            found += 1

            if not is_same_host(link, self.base_url):
                continue
            if self.should_ignore(link) or self.is_disallowed_by_robots(link):
                continue
            with self._state_lock:
                already_visited = link in self.visited_urls
            if not already_visited and self._enqueue(CrawlTask(link, depth + 1)):
                queued += 1

        logger.debug(f"{page_url}: {found} links found, {queued} queued")

    def _record(self, result: PageResult):
        with self._state_lock:
            self.results.append(result)

    async def _bounded(self, awaitable):
        """Await a render backend call under the navigation timeout."""
        return await asyncio.wait_for(awaitable, timeout=self.config.navigation_timeout_seconds)

    async def _close_page(self, page: RenderedPage):
        try:
            await self._bounded(page.close())
        except Exception as e:
            logger.debug(f"Error closing page: {e}")


async def crawl_site(
    base_url: str,
    config: CrawlConfig | None = None,
    backend: RenderBackend | None = None,
) -> list[PageResult]:
    """Convenience function to crawl a site and return its pages."""
    crawler = SiteCrawler(base_url, config=config, backend=backend)
    return await crawler.start()
