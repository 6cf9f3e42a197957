"""
Audit service - end-to-end audit runs.

Wires the crawler to the audit processor: creates the audit, crawls the
local site, submits the crawled pages and polls the stored audit until it
is completed or failed. Also resolves audits by ID prefix and exports
fix prompts and reports.
"""

import asyncio
import logging
from typing import Callable

from seolocal.config import settings
from seolocal.core.exceptions import AuditError, CrawlerSetupError, NotFoundError
from seolocal.schemas.audit import AuditConfig, AuditStatus, LocalAudit
from seolocal.services.audit_processor import AuditProcessor
from seolocal.services.crawler import CrawlConfig, SiteCrawler
from seolocal.services.markdown_generator import MarkdownGenerator
from seolocal.services.renderer import RenderBackend

logger = logging.getLogger(__name__)

SHORT_ID_LENGTH = 8


def build_base_url(port: int) -> str:
    return f"http://localhost:{port}"


def default_audit_config(**overrides) -> AuditConfig:
    """AuditConfig populated from settings, with keyword overrides."""
    values = {
        "port": settings.DEFAULT_PORT,
        "concurrency": settings.DEFAULT_CONCURRENCY,
        "max_pages": settings.DEFAULT_MAX_PAGES,
        "max_depth": settings.DEFAULT_MAX_DEPTH,
        "ignore_patterns": list(settings.DEFAULT_IGNORE_PATTERNS),
    }
    values.update(overrides)
    return AuditConfig(**values)


class AuditService:
    """High-level audit operations used by the presentation layer."""

    def __init__(
        self,
        processor: AuditProcessor | None = None,
        backend_factory: Callable[[], RenderBackend] | None = None,
        poll_interval: float | None = None,
    ):
        self.processor = processor or AuditProcessor()
        self.backend_factory = backend_factory
        self.poll_interval = settings.AUDIT_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval

    async def run_audit(self, base_url: str | None = None, config: AuditConfig | None = None) -> LocalAudit:
        """Crawl, analyze and summarize a site; returns the completed audit."""
        config = config or default_audit_config()
        base_url = base_url or build_base_url(config.port)

        audit = self.processor.start_audit(base_url, config)
        logger.info(f"Running audit {audit.id} against {base_url}")

        backend = self.backend_factory() if self.backend_factory else None
        crawler = SiteCrawler(base_url, CrawlConfig.from_audit_config(config), backend=backend)
        try:
            pages = await crawler.start()
        except CrawlerSetupError as e:
            self.processor.store.fail_audit(audit.id, str(e))
            raise

        if not pages:
            reason = f"no pages found on {base_url} - check if the site is running"
            self.processor.store.fail_audit(audit.id, reason)
            raise AuditError(reason)

        await self.processor.submit_pages(audit.id, pages)
        return await self._wait_for_completion(audit.id)

    async def _wait_for_completion(self, audit_id: str) -> LocalAudit:
        while True:
            audit = self.processor.get_audit_status(audit_id)
            logger.debug(
                f"Audit {audit_id} progress: status={audit.status.value} "
                f"analyzed={audit.pages_analyzed}/{audit.pages_discovered}"
            )

            if audit.status == AuditStatus.COMPLETED:
                return audit
            if audit.status == AuditStatus.FAILED:
                raise AuditError(f"audit failed: {audit.error_message or 'unknown error'}")

            await asyncio.sleep(self.poll_interval)

    def list_audits(self) -> list[LocalAudit]:
        return self.processor.list_audits()

    def get_audit(self, audit_id: str) -> LocalAudit:
        """Find an audit by full ID or by its 8-character short ID."""
        audits = self.processor.list_audits()

        for audit in audits:
            if audit.id == audit_id:
                return audit

        if len(audit_id) == SHORT_ID_LENGTH:
            for audit in audits:
                if audit.id[:SHORT_ID_LENGTH] == audit_id:
                    return audit

        raise NotFoundError("Audit")

    def export_fix_prompt(self, audit_id: str) -> str:
        """AI-ready markdown prompt for fixing every page of an audit."""
        audit = self.get_audit(audit_id)

        pages = []
        for page in audit.pages:
            try:
                pages.append(self.processor.get_page_details(audit.id, page.url))
            except NotFoundError:
                logger.warning(f"Page details missing for {page.url}")

        if not pages:
            raise AuditError("no page details found for export")

        return MarkdownGenerator.generate_fix_prompt(pages)

    def export_report(self, audit_id: str) -> str:
        return MarkdownGenerator.generate_audit_report(self.get_audit(audit_id))
