"""
Audit schemas.

These models are the on-disk JSON document: one LocalAudit per file, with
its pages and (once completed) its summary embedded.
"""
from datetime import datetime
from enum import Enum
from typing import Union

from pydantic import Field, StrictBool, StrictFloat, StrictInt, StrictStr

from seolocal.schemas.common import BaseSchema

# Bool is listed first so JSON true/false never decays into 1/0.
CheckValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr]


class AuditStatus(str, Enum):
    DISCOVERING = "discovering"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


class PageStatus(str, Enum):
    PENDING = "pending"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


class AuditConfig(BaseSchema):
    """Audit configuration supplied by the caller."""

    port: int = 3000
    concurrency: int = 4
    max_pages: int = Field(default=0, ge=0)
    max_depth: int = Field(default=0, ge=0)
    ignore_patterns: list[str] = []


class CheckResult(BaseSchema):
    """Outcome of a single named check."""

    passed: bool
    value: CheckValue
    message: str
    weight: int


class PageLink(BaseSchema):
    url: str
    anchor_text: str = ""
    nofollow: bool = False


class LocalPageAnalysis(BaseSchema):
    """Analysis of a single page; unique per URL within an audit."""

    id: str
    url: str
    status_code: int
    depth: int = 0
    analysis_status: PageStatus = PageStatus.PENDING
    seo_score: float | None = None
    analyzed_at: datetime | None = None

    # SEO elements
    title: str = ""
    meta_description: str = ""
    h1: str = ""
    h1_count: int = 0
    h2: list[str] = []
    h2_count: int = 0
    h3_count: int = 0
    h4_count: int = 0
    h5_count: int = 0
    h6_count: int = 0
    canonical_url: str = ""
    word_count: int = 0
    title_length: int = 0
    description_length: int = 0
    internal_links_count: int = 0
    external_links_count: int = 0
    total_links_count: int = 0
    images_total: int = 0
    images_with_alt: int = 0
    images_without_alt: int = 0
    is_indexable: bool = False
    indexability_reason: str = ""
    has_noindex: bool = False
    has_nofollow: bool = False
    has_nocache: bool = False
    detected_language: str = ""
    has_viewport_meta: bool = False
    has_charset: bool = False
    has_meta_refresh: bool = False
    has_open_graph: bool = False
    has_twitter_card: bool = False
    has_structured_data: bool = False
    meta: dict[str, str] = {}
    issues_count: int = 0

    checks: dict[str, CheckResult] = {}

    internal_links: list[PageLink] = []
    external_links: list[PageLink] = []


class LocalAuditSummary(BaseSchema):
    """Aggregate statistics, generated once when the audit completes."""

    total_pages: int = 0
    average_score: float = 0.0
    issues_found: int = 0
    critical_issues: int = 0
    warning_issues: int = 0
    passed_checks: int = 0
    failed_checks: int = 0
    top_issues: list[str] = []
    recommendations: list[str] = []
    score_by_page: dict[str, int] = {}
    pages_missing_title: int = 0
    pages_missing_description: int = 0
    pages_missing_h1: int = 0
    pages_score_90_plus: int = 0
    pages_score_70_89: int = 0
    pages_score_50_69: int = 0
    pages_score_below_50: int = 0
    duplicate_titles_count: int = 0
    duplicate_descriptions_count: int = 0
    orphaned_pages_count: int = 0


class LocalAudit(BaseSchema):
    """Root audit document."""

    id: str
    base_url: str
    created_at: datetime
    completed_at: datetime | None = None
    status: AuditStatus = AuditStatus.DISCOVERING
    pages_discovered: int = 0
    pages_analyzed: int = 0
    overall_score: float | None = None
    avg_page_score: float | None = None
    config: AuditConfig = Field(default_factory=AuditConfig)
    pages: list[LocalPageAnalysis] = []
    summary: LocalAuditSummary | None = None
    error_message: str | None = None

    def get_page(self, url: str) -> LocalPageAnalysis | None:
        for page in self.pages:
            if page.url == url:
                return page
        return None
