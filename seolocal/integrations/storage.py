"""
Local audit storage.

One JSON document per audit under the storage directory
(``~/.seo/audits/<audit-id>.json`` by default). Every read-modify-write of
an audit runs under that audit's lock, and every write goes through a
temporary file that is atomically renamed over the target.
"""

import logging
import os
import tempfile
import threading
import uuid
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from seolocal.config import settings
from seolocal.core.exceptions import NotFoundError, StorageError
from seolocal.schemas.audit import (
    AuditConfig,
    AuditStatus,
    LocalAudit,
    LocalAuditSummary,
    LocalPageAnalysis,
    PageStatus,
)
from seolocal.services.urls import normalize_url

logger = logging.getLogger(__name__)

VIEWPORT_ISSUE = "Page is missing viewport meta tag (important for mobile)"
MAX_TOP_ISSUES = 5
MAX_RECOMMENDATIONS = 5


class LocalAuditStore:
    """Filesystem store for LocalAudit documents."""

    def __init__(self, base_path: str | Path | None = None):
        self.base_path = Path(base_path) if base_path else settings.storage_dir
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"failed to create audits directory {self.base_path}: {e}") from e

        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        logger.debug(f"LocalAuditStore initialized at {self.base_path}")

    # -------------------------------------------------------------------------
    # Paths & locking
    # -------------------------------------------------------------------------

    def _audit_path(self, audit_id: str) -> Path:
        if not audit_id or "/" in audit_id or "\\" in audit_id or audit_id.startswith("."):
            raise NotFoundError("Audit")
        return self.base_path / f"{audit_id}.json"

    def _lock_for(self, audit_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(audit_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[audit_id] = lock
            return lock

    def _update(self, audit_id: str, mutate: Callable[[LocalAudit], None]) -> LocalAudit:
        """Load, mutate and save an audit while holding its lock."""
        with self._lock_for(audit_id):
            audit = self.load_audit(audit_id)
            mutate(audit)
            self._write(audit)
            return audit

    def _write(self, audit: LocalAudit):
        path = self._audit_path(audit.id)
        data = audit.model_dump_json(indent=2)

        fd, tmp_path = tempfile.mkstemp(dir=self.base_path, prefix=f".{audit.id}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise StorageError(f"failed to write audit file {path.name}: {e}") from e

    # -------------------------------------------------------------------------
    # Whole-document operations
    # -------------------------------------------------------------------------

    def create_audit(self, base_url: str, config: AuditConfig | None = None) -> LocalAudit:
        audit = LocalAudit(
            id=str(uuid.uuid4()),
            base_url=base_url,
            created_at=datetime.now(timezone.utc),
            status=AuditStatus.DISCOVERING,
            config=config or AuditConfig(),
        )
        self.save_audit(audit)
        logger.info(f"Created audit {audit.id} for {base_url}")
        return audit

    def save_audit(self, audit: LocalAudit):
        with self._lock_for(audit.id):
            self._write(audit)

    def load_audit(self, audit_id: str) -> LocalAudit:
        path = self._audit_path(audit_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFoundError("Audit")
        except OSError as e:
            raise StorageError(f"failed to read audit file {path.name}: {e}") from e
        except UnicodeDecodeError as e:
            raise StorageError(f"audit file {path.name} is not valid UTF-8: {e}") from e

        try:
            return LocalAudit.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"failed to decode audit file {path.name}: {e}") from e

    def list_audits(self) -> list[LocalAudit]:
        """All readable audits, newest first. Unreadable files are skipped."""
        audits = []
        for path in self.base_path.glob("*.json"):
            if not path.is_file():
                continue
            try:
                audits.append(self.load_audit(path.stem))
            except (StorageError, NotFoundError) as e:
                logger.warning(f"Skipping unreadable audit file {path.name}: {e}")

        audits.sort(key=lambda a: a.created_at, reverse=True)
        return audits

    def delete_audit(self, audit_id: str):
        path = self._audit_path(audit_id)
        with self._lock_for(audit_id):
            try:
                path.unlink()
            except FileNotFoundError:
                raise NotFoundError("Audit")
            except OSError as e:
                raise StorageError(f"failed to delete audit file {path.name}: {e}") from e

        with self._locks_guard:
            self._locks.pop(audit_id, None)
        logger.info(f"Deleted audit {audit_id}")

    # -------------------------------------------------------------------------
    # Incremental updates
    # -------------------------------------------------------------------------

    def add_page_analysis(self, audit_id: str, page: LocalPageAnalysis) -> LocalAudit:
        """Insert or replace the page record with the same URL."""

        def upsert(audit: LocalAudit):
            for i, existing in enumerate(audit.pages):
                if existing.url == page.url:
                    audit.pages[i] = page
                    break
            else:
                audit.pages.append(page)

            audit.pages_analyzed = len(audit.pages)
            scores = [p.seo_score for p in audit.pages if p.seo_score is not None]
            if scores:
                audit.avg_page_score = sum(scores) / len(scores)

        return self._update(audit_id, upsert)

    def update_status(
        self,
        audit_id: str,
        status: AuditStatus,
        pages_discovered: int | None = None,
    ) -> LocalAudit:
        def apply(audit: LocalAudit):
            audit.status = status
            if pages_discovered is not None:
                audit.pages_discovered = pages_discovered

        return self._update(audit_id, apply)

    def complete_audit(self, audit_id: str) -> LocalAudit:
        def finish(audit: LocalAudit):
            audit.completed_at = datetime.now(timezone.utc)
            audit.status = AuditStatus.COMPLETED
            audit.error_message = None
            audit.summary = generate_summary(audit)
            audit.overall_score = audit.summary.average_score

        audit = self._update(audit_id, finish)
        logger.info(
            f"Completed audit {audit_id}: {audit.pages_analyzed} pages, "
            f"average score {audit.overall_score:.1f}"
        )
        return audit

    def fail_audit(self, audit_id: str, reason: str = "") -> LocalAudit:
        def fail(audit: LocalAudit):
            audit.completed_at = datetime.now(timezone.utc)
            audit.status = AuditStatus.FAILED
            audit.error_message = reason or None

        audit = self._update(audit_id, fail)
        logger.error(f"Audit {audit_id} failed: {reason}")
        return audit


def generate_summary(audit: LocalAudit) -> LocalAuditSummary:
    """Aggregate statistics over the pages of an audit.

    Score statistics cover every scored page, including zero-score failed
    fetches. Content statistics (missing elements, duplicates, check tallies)
    cover only pages whose analysis completed.
    """
    summary = LocalAuditSummary(total_pages=len(audit.pages))
    if not audit.pages:
        return summary

    issue_counter: Counter[str] = Counter()
    titles: Counter[str] = Counter()
    descriptions: Counter[str] = Counter()
    scores: list[float] = []

    for page in audit.pages:
        if page.seo_score is not None:
            scores.append(page.seo_score)
            bucket = int(page.seo_score)
            summary.score_by_page[page.url] = bucket
            if bucket >= 90:
                summary.pages_score_90_plus += 1
            elif bucket >= 70:
                summary.pages_score_70_89 += 1
            elif bucket >= 50:
                summary.pages_score_50_69 += 1
            else:
                summary.pages_score_below_50 += 1

        summary.issues_found += page.issues_count
        if page.issues_count > 5:
            summary.critical_issues += 1
        elif page.issues_count > 0:
            summary.warning_issues += 1

        if page.analysis_status != PageStatus.COMPLETED:
            continue

        if not page.title.strip():
            summary.pages_missing_title += 1
            issue_counter["Missing title tag"] += 1
        else:
            titles[page.title] += 1

        if not page.meta_description.strip():
            summary.pages_missing_description += 1
            issue_counter["Missing meta description"] += 1
        else:
            descriptions[page.meta_description] += 1

        if page.h1_count == 0:
            summary.pages_missing_h1 += 1
            issue_counter["Missing H1 heading"] += 1

        for check in page.checks.values():
            if check.passed:
                summary.passed_checks += 1
            else:
                summary.failed_checks += 1
                issue_counter[check.message] += 1

    if scores:
        summary.average_score = sum(scores) / len(scores)

    summary.duplicate_titles_count = sum(1 for n in titles.values() if n > 1)
    summary.duplicate_descriptions_count = sum(1 for n in descriptions.values() if n > 1)
    summary.orphaned_pages_count = count_orphaned_pages(audit)

    ranked = sorted(issue_counter.items(), key=lambda item: (-item[1], item[0]))
    summary.top_issues = [f"{message} ({count} pages)" for message, count in ranked[:MAX_TOP_ISSUES]]
    summary.recommendations = generate_recommendations(summary, issue_counter)

    return summary


def generate_recommendations(summary: LocalAuditSummary, issues: Counter) -> list[str]:
    recommendations = []

    if summary.pages_missing_title > 0:
        recommendations.append(f"Add title tags to {summary.pages_missing_title} pages")
    if summary.pages_missing_description > 0:
        recommendations.append(f"Add meta descriptions to {summary.pages_missing_description} pages")
    if summary.pages_missing_h1 > 0:
        recommendations.append(f"Add H1 headings to {summary.pages_missing_h1} pages")
    if summary.duplicate_titles_count > 1:
        recommendations.append(f"Fix {summary.duplicate_titles_count} duplicate title tags")
    if summary.duplicate_descriptions_count > 1:
        recommendations.append(f"Fix {summary.duplicate_descriptions_count} duplicate meta descriptions")
    if issues.get(VIEWPORT_ISSUE, 0) > 0:
        recommendations.append("Add viewport meta tag for mobile optimization")
    if summary.average_score < 70:
        recommendations.append("Focus on improving overall SEO scores")

    return recommendations[:MAX_RECOMMENDATIONS]


def count_orphaned_pages(audit: LocalAudit) -> int:
    """Analyzed pages that no other analyzed page links to. The start page is never orphaned."""
    linked: set[str] = set()
    for page in audit.pages:
        source = normalize_url(page.url)
        for link in page.internal_links:
            target = normalize_url(link.url)
            if target != source:
                linked.add(target)

    root = normalize_url(audit.base_url)
    return sum(
        1
        for page in audit.pages
        if page.analysis_status == PageStatus.COMPLETED
        and normalize_url(page.url) != root
        and normalize_url(page.url) not in linked
    )
