"""
Audit processor.

Takes the crawler's raw page results, analyzes and scores them with
bounded concurrency and persists one record per page. Once every page is
stored the audit is finalized in the background (summary, overall score,
status ``completed``; ``failed`` if finalization itself errors).
"""

import asyncio
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Callable

from seolocal.config import settings
from seolocal.core.exceptions import AnalysisError, NotFoundError
from seolocal.integrations.storage import LocalAuditStore
from seolocal.schemas.audit import (
    AuditConfig,
    AuditStatus,
    LocalAudit,
    LocalPageAnalysis,
    PageLink,
    PageStatus,
)
from seolocal.services.analyzer import AnalysisResult, LinkInfo, analyze_content
from seolocal.services.checker import CheckResults, SEOChecker
from seolocal.services.crawler import PageResult
from seolocal.services.urls import normalize_url

logger = logging.getLogger(__name__)

Analyzer = Callable[[str, str], AnalysisResult]


def _page_links(links: list[LinkInfo]) -> list[PageLink]:
    return [PageLink(url=l.url, anchor_text=l.anchor_text, nofollow=l.nofollow) for l in links]


def build_page_analysis(
    page: PageResult,
    analysis: AnalysisResult,
    checks: CheckResults,
) -> LocalPageAnalysis:
    """Flatten analyzer and checker output into the persisted page record."""
    return LocalPageAnalysis(
        id=str(uuid.uuid4()),
        url=page.url,
        status_code=page.status_code,
        depth=page.depth,
        analysis_status=PageStatus.COMPLETED,
        seo_score=checks.score,
        analyzed_at=datetime.now(timezone.utc),
        title=analysis.title,
        meta_description=analysis.description,
        h1=analysis.h1[0] if analysis.h1 else "",
        h1_count=analysis.h1_count,
        h2=list(analysis.h2),
        h2_count=analysis.h2_count,
        h3_count=analysis.h3_count,
        h4_count=analysis.h4_count,
        h5_count=analysis.h5_count,
        h6_count=analysis.h6_count,
        canonical_url=analysis.canonical,
        word_count=analysis.word_count,
        title_length=analysis.title_length,
        description_length=analysis.description_length,
        internal_links_count=analysis.internal_links_count,
        external_links_count=analysis.external_links_count,
        total_links_count=analysis.total_links_count,
        images_total=analysis.images_total,
        images_with_alt=analysis.images_with_alt,
        images_without_alt=analysis.images_without_alt,
        is_indexable=checks.indexable,
        indexability_reason=checks.indexability_reason,
        has_noindex=analysis.noindex,
        has_nofollow=analysis.nofollow,
        has_nocache=analysis.nocache,
        detected_language=analysis.language,
        has_viewport_meta=analysis.has_viewport_meta,
        has_charset=analysis.has_charset,
        has_meta_refresh=analysis.has_meta_refresh,
        has_open_graph=analysis.has_open_graph,
        has_twitter_card=analysis.has_twitter_card,
        has_structured_data=analysis.has_structured_data,
        meta=dict(analysis.meta),
        issues_count=checks.issues_count,
        checks=dict(checks.checks),
        internal_links=_page_links(analysis.internal_links),
        external_links=_page_links(analysis.external_links),
    )


def build_failed_page(page: PageResult, reason: str) -> LocalPageAnalysis:
    """Zero-score record for a page that could not be fetched or parsed."""
    return LocalPageAnalysis(
        id=str(uuid.uuid4()),
        url=page.url,
        status_code=page.status_code,
        depth=page.depth,
        analysis_status=PageStatus.FAILED,
        seo_score=0.0,
        analyzed_at=datetime.now(timezone.utc),
        is_indexable=False,
        indexability_reason=reason,
        issues_count=1,
    )


class AuditProcessor:
    """Drives one or more audits from submitted crawl results to a completed summary."""

    def __init__(self, store: LocalAuditStore | None = None, analyzer: Analyzer = analyze_content):
        self.store = store or LocalAuditStore()
        self.analyzer = analyzer

        # Current audit handle and in-flight pages share one lock
        self._lock = threading.Lock()
        self._audit: LocalAudit | None = None
        self._processing: set[str] = set()

        self._finalizers: dict[str, asyncio.Task] = {}

    @property
    def current_audit(self) -> LocalAudit | None:
        with self._lock:
            return self._audit

    @property
    def processing_pages(self) -> set[str]:
        with self._lock:
            return set(self._processing)

    def start_audit(self, base_url: str, config: AuditConfig | None = None) -> LocalAudit:
        audit = self.store.create_audit(base_url, config or AuditConfig())
        with self._lock:
            self._audit = audit
        logger.info(f"Started new audit {audit.id} for {base_url}")
        return audit

    async def submit_pages(self, audit_id: str, pages: list[PageResult]):
        """Record failed fetches, analyze the rest concurrently, finalize in the background.

        Raises NotFoundError for an unknown audit. Returns once the analysis
        work has been scheduled; use wait_until_finished() to await completion.
        """
        audit = await asyncio.to_thread(
            self.store.update_status, audit_id, AuditStatus.ANALYZING, len(pages)
        )
        with self._lock:
            self._audit = audit

        concurrency = audit.config.concurrency
        if concurrency <= 0:
            concurrency = settings.ANALYSIS_DEFAULT_CONCURRENCY

        logger.info(f"Processing {len(pages)} pages with concurrency {concurrency}")

        to_analyze = []
        for page in pages:
            if page.status_code != 200:
                await asyncio.to_thread(self._add_failed_page, audit_id, page)
            else:
                to_analyze.append(page)

        semaphore = asyncio.Semaphore(concurrency)
        task = asyncio.create_task(self._analyze_and_finalize(audit_id, to_analyze, semaphore))
        self._finalizers[audit_id] = task
        task.add_done_callback(lambda done: self._forget_finalizer(audit_id, done))

    def _forget_finalizer(self, audit_id: str, task: asyncio.Task):
        # A resubmission may already have registered a newer finalizer
        if self._finalizers.get(audit_id) is task:
            del self._finalizers[audit_id]

    async def wait_until_finished(self, audit_id: str) -> LocalAudit:
        task = self._finalizers.get(audit_id)
        if task is not None:
            await asyncio.shield(task)
        return self.get_audit_status(audit_id)

    def get_audit_status(self, audit_id: str) -> LocalAudit:
        """Always reloads from disk."""
        return self.store.load_audit(audit_id)

    def get_page_details(self, audit_id: str, page_url: str) -> LocalPageAnalysis:
        audit = self.store.load_audit(audit_id)
        page = audit.get_page(page_url) or audit.get_page(normalize_url(page_url))
        if page is None:
            raise NotFoundError("Page")
        return page

    def list_audits(self) -> list[LocalAudit]:
        return self.store.list_audits()

    def delete_audit(self, audit_id: str):
        self.store.delete_audit(audit_id)
        with self._lock:
            if self._audit is not None and self._audit.id == audit_id:
                self._audit = None

    async def _analyze_and_finalize(
        self,
        audit_id: str,
        pages: list[PageResult],
        semaphore: asyncio.Semaphore,
    ):
        await asyncio.gather(*(self._process_with_limit(semaphore, audit_id, page) for page in pages))
        await self._complete_audit(audit_id)

    async def _process_with_limit(self, semaphore: asyncio.Semaphore, audit_id: str, page: PageResult):
        async with semaphore:
            try:
                await asyncio.to_thread(self._process_page, audit_id, page)
            except Exception as e:
                logger.error(f"Failed to process page {page.url}: {e}")

    def _process_page(self, audit_id: str, page: PageResult):
        with self._lock:
            self._processing.add(page.url)
        try:
            logger.debug(f"Analyzing page: {page.url}")
            try:
                analysis = self.analyzer(page.content, page.url)
                checks = SEOChecker(analysis, page.status_code).run_all_checks()
                record = build_page_analysis(page, analysis, checks)
            except AnalysisError as e:
                logger.warning(f"Analysis failed for {page.url}: {e}")
                self.store.add_page_analysis(audit_id, build_failed_page(page, f"Analysis failed: {e}"))
                return
            except Exception as e:
                logger.error(f"Unexpected error analyzing {page.url}: {e!r}")
                self.store.add_page_analysis(audit_id, build_failed_page(page, f"Analysis failed: {e}"))
                return

            self.store.add_page_analysis(audit_id, record)
            logger.info(f"Completed analysis for {page.url} (score: {checks.score:.1f})")
        finally:
            with self._lock:
                self._processing.discard(page.url)

    def _add_failed_page(self, audit_id: str, page: PageResult):
        reason = f"HTTP {page.status_code} - Page not accessible"
        try:
            self.store.add_page_analysis(audit_id, build_failed_page(page, reason))
        except Exception as e:
            logger.error(f"Failed to record failed page {page.url}: {e}")

    async def _complete_audit(self, audit_id: str):
        logger.info(f"Completing audit {audit_id}")
        try:
            audit = await asyncio.to_thread(self.store.complete_audit, audit_id)
        except Exception as e:
            logger.error(f"Failed to complete audit {audit_id}: {e}")
            try:
                audit = await asyncio.to_thread(self.store.fail_audit, audit_id, str(e))
            except Exception as fail_error:
                logger.error(f"Could not mark audit {audit_id} as failed: {fail_error}")
                return

        with self._lock:
            if self._audit is None or self._audit.id == audit_id:
                self._audit = audit
