"""
SEO Checker - per-page weighted rule battery.

A page that is not indexable (non-200 status or a robots noindex
directive) is not checked at all and scores 0. Otherwise every check in
CHECK_WEIGHTS runs against the AnalysisResult and the page score is the
weighted pass ratio, scaled to 100 and rounded to one decimal.
"""

import logging
import math
from dataclasses import dataclass, field

from seolocal.schemas.audit import CheckResult
from seolocal.services.analyzer import AnalysisResult
from seolocal.services.urls import normalize_url, resolve_url

logger = logging.getLogger(__name__)

CHECK_WEIGHTS: dict[str, int] = {
    "response_status_code": 100,
    "title_presence": 90,
    "title_length": 80,
    "unique_title_tag": 85,
    "meta_description_presence": 75,
    "meta_description_length": 70,
    "unique_meta_description": 65,
    "h1_presence": 90,
    "unique_h1_heading": 85,
    "h1_length": 75,
    "h2_presence": 55,
    "content_length": 75,
    "canonical_url_presence": 55,
    "url_matches_canonical": 50,
    "unique_canonical_link": 45,
    "meta_robots_indexing": 65,
    "outlinks_count": 35,
    "external_links_count": 30,
    "missing_alt_attribute": 55,
    "meta_refresh_redirect": 25,
    "viewport_meta": 40,
    "charset_declared": 35,
    "images_optimization": 45,
    "structured_data": 35,
    "page_loading_speed": 60,
    "social_media_meta": 25,
}

TITLE_LENGTH_RANGE = (25, 65)
DESCRIPTION_LENGTH_RANGE = (110, 155)
H1_LENGTH_RANGE = (15, 65)
MIN_WORD_COUNT = 250
INTERNAL_LINKS_RANGE = (1, 100)
MAX_EXTERNAL_LINKS = 15
MIN_ALT_RATIO = 0.8
MIN_SPEED_SCORE = 70


@dataclass
class CheckResults:
    indexable: bool
    indexability_reason: str = ""
    score: float = 0.0
    checks: dict[str, CheckResult] = field(default_factory=dict)

    @property
    def issues_count(self) -> int:
        return sum(1 for check in self.checks.values() if not check.passed)

    def to_dict(self) -> dict:
        return {
            "indexable": self.indexable,
            "indexability_reason": self.indexability_reason,
            "score": self.score,
            "checks": {name: check.model_dump() for name, check in self.checks.items()},
        }


def round_half_up(value: float, digits: int = 1) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def calculate_score(checks: dict[str, CheckResult]) -> float:
    """Weighted pass ratio on a 0-100 scale."""
    total = sum(check.weight for check in checks.values())
    if total == 0:
        return 0.0
    passed = sum(check.weight for check in checks.values() if check.passed)
    return round_half_up(passed / total * 100, 1)


def estimate_loading_speed(word_count: int, image_count: int) -> int:
    """Rough 0-100 speed estimate from page weight signals."""
    score = 100
    if image_count > 15:
        score -= min((image_count - 15) * 3, 50)
    if word_count > 3000:
        score -= min((word_count - 3000) // 250 * 5, 30)
    return max(score, 0)


class SEOChecker:
    """Runs the full check battery for a single analyzed page."""

    def __init__(self, analysis: AnalysisResult, status_code: int):
        self.analysis = analysis
        self.status_code = status_code
        self.results: dict[str, CheckResult] = {}

    def run_all_checks(self) -> CheckResults:
        reason = self.indexability_reason()
        if reason:
            return CheckResults(indexable=False, indexability_reason=reason, score=0.0, checks={})

        self._check_response_status_code()
        self._check_title_presence()
        self._check_title_length()
        self._check_unique_title_tag()
        self._check_meta_description_presence()
        self._check_meta_description_length()
        self._check_unique_meta_description()
        self._check_h1_presence()
        self._check_unique_h1_heading()
        self._check_h1_length()
        self._check_h2_presence()
        self._check_content_length()
        self._check_canonical_url_presence()
        self._check_url_matches_canonical()
        self._check_unique_canonical_link()
        self._check_meta_robots_indexing()
        self._check_outlinks_count()
        self._check_external_links_count()
        self._check_missing_alt_attribute()
        self._check_meta_refresh_redirect()
        self._check_viewport_meta()
        self._check_charset_declared()
        self._check_images_optimization()
        self._check_structured_data()
        self._check_page_loading_speed()
        self._check_social_media_meta()

        return CheckResults(
            indexable=True,
            indexability_reason="",
            score=calculate_score(self.results),
            checks=dict(self.results),
        )

    def indexability_reason(self) -> str:
        """Empty string when the page may be indexed."""
        if self.status_code != 200:
            return f"HTTP {self.status_code} - Page not accessible"
        if self.analysis.noindex:
            return "Meta robots noindex directive"
        return ""

    def _add(self, name: str, passed: bool, value, message: str):
        self.results[name] = CheckResult(
            passed=passed,
            value=value,
            message=message,
            weight=CHECK_WEIGHTS[name],
        )

    # =========================================================================
    # Response & title
    # =========================================================================

    def _check_response_status_code(self):
        passed = self.status_code == 200
        message = "Page returns HTTP 200" if passed else f"Page returns HTTP {self.status_code}"
        self._add("response_status_code", passed, self.status_code, message)

    def _check_title_presence(self):
        title = self.analysis.title.strip()
        passed = title != ""
        message = "Page has a title tag" if passed else "Page is missing a title tag"
        self._add("title_presence", passed, title, message)

    def _check_title_length(self):
        length = self.analysis.title_length
        low, high = TITLE_LENGTH_RANGE
        passed = low <= length <= high
        if passed:
            message = f"Title length is {length} characters (optimal: {low}-{high})"
        elif length < low:
            message = f"Title is too short ({length} chars). Consider {low}-{high} characters"
        else:
            message = f"Title is too long ({length} chars). Consider {low}-{high} characters"
        self._add("title_length", passed, length, message)

    def _check_unique_title_tag(self):
        # Uniqueness needs the whole site; the audit summary counts duplicates
        self._add(
            "unique_title_tag",
            True,
            self.analysis.title,
            "Title appears to be unique (single page analysis)",
        )

    # =========================================================================
    # Meta description
    # =========================================================================

    def _check_meta_description_presence(self):
        description = self.analysis.description.strip()
        passed = description != ""
        message = "Page has a meta description" if passed else "Page is missing a meta description"
        self._add("meta_description_presence", passed, description, message)

    def _check_meta_description_length(self):
        length = self.analysis.description_length
        low, high = DESCRIPTION_LENGTH_RANGE
        passed = low <= length <= high
        if passed:
            message = f"Meta description length is {length} characters (optimal: {low}-{high})"
        elif length < low:
            message = f"Meta description is too short ({length} chars). Consider {low}-{high} characters"
        else:
            message = f"Meta description is too long ({length} chars). Consider {low}-{high} characters"
        self._add("meta_description_length", passed, length, message)

    def _check_unique_meta_description(self):
        self._add(
            "unique_meta_description",
            True,
            self.analysis.description,
            "Meta description appears to be unique (single page analysis)",
        )

    # =========================================================================
    # Headings & content
    # =========================================================================

    def _check_h1_presence(self):
        passed = self.analysis.h1_count >= 1
        value = self.analysis.h1[0] if self.analysis.h1 else ""
        message = "Page has an H1 heading" if passed else "Page is missing an H1 heading"
        self._add("h1_presence", passed, value, message)

    def _check_unique_h1_heading(self):
        count = self.analysis.h1_count
        passed = count == 1
        if passed:
            message = "Page has exactly 1 H1 heading"
        elif count == 0:
            message = "Page has no H1 heading"
        else:
            message = f"Page has {count} H1 headings (should have exactly 1)"
        self._add("unique_h1_heading", passed, count, message)

    def _check_h1_length(self):
        if not self.analysis.h1:
            self._add("h1_length", False, 0, "No H1 heading to check length")
            return

        length = len(self.analysis.h1[0])
        low, high = H1_LENGTH_RANGE
        passed = low <= length <= high
        if passed:
            message = f"H1 length is {length} characters (optimal: {low}-{high})"
        elif length < low:
            message = f"H1 is too short ({length} chars). Consider {low}-{high} characters"
        else:
            message = f"H1 is too long ({length} chars). Consider {low}-{high} characters"
        self._add("h1_length", passed, length, message)

    def _check_h2_presence(self):
        count = self.analysis.h2_count
        passed = count > 0
        if passed:
            message = f"Page has {count} H2 headings"
        else:
            message = "Page has no H2 headings (consider adding for structure)"
        self._add("h2_presence", passed, count, message)

    def _check_content_length(self):
        words = self.analysis.word_count
        passed = words >= MIN_WORD_COUNT
        if passed:
            message = f"Page has {words} words of content"
        else:
            message = f"Page has only {words} words (consider {MIN_WORD_COUNT}+ for better SEO)"
        self._add("content_length", passed, words, message)

    # =========================================================================
    # Canonical & robots
    # =========================================================================

    def _check_canonical_url_presence(self):
        canonical = self.analysis.canonical
        passed = canonical != ""
        message = "Page has a canonical URL" if passed else "Page is missing a canonical URL"
        self._add("canonical_url_presence", passed, canonical, message)

    def _check_url_matches_canonical(self):
        canonical = self.analysis.canonical
        if not canonical:
            self._add("url_matches_canonical", False, "", "No canonical URL to compare")
            return

        resolved = resolve_url(self.analysis.url, canonical)
        passed = bool(resolved) and normalize_url(resolved) == normalize_url(self.analysis.url)
        message = "Canonical URL matches page URL" if passed else "Canonical URL does not match page URL"
        self._add("url_matches_canonical", passed, canonical, message)

    def _check_unique_canonical_link(self):
        self._add(
            "unique_canonical_link",
            True,
            self.analysis.canonical,
            "Canonical URL appears to be unique (single page analysis)",
        )

    def _check_meta_robots_indexing(self):
        passed = not self.analysis.noindex
        message = "Page allows indexing" if passed else "Page has noindex directive"
        self._add("meta_robots_indexing", passed, self.analysis.noindex, message)

    # =========================================================================
    # Links & images
    # =========================================================================

    def _check_outlinks_count(self):
        count = self.analysis.internal_links_count
        low, high = INTERNAL_LINKS_RANGE
        passed = low <= count <= high
        if passed:
            message = f"Page has {count} internal links"
        elif count < low:
            message = "Page has no internal links (consider adding for better navigation)"
        else:
            message = f"Page has {count} internal links (consider reducing)"
        self._add("outlinks_count", passed, count, message)

    def _check_external_links_count(self):
        count = self.analysis.external_links_count
        passed = count <= MAX_EXTERNAL_LINKS
        message = f"Page has {count} external links"
        if not passed:
            message += " (consider reducing)"
        self._add("external_links_count", passed, count, message)

    def _check_missing_alt_attribute(self):
        total = self.analysis.images_total
        missing = self.analysis.images_without_alt
        if total == 0:
            passed, message = True, "Page has no images to check"
        elif missing == 0:
            passed, message = True, f"All {total} images have alt attributes"
        else:
            passed, message = False, f"{missing} of {total} images are missing alt attributes"
        self._add("missing_alt_attribute", passed, missing, message)

    def _check_images_optimization(self):
        total = self.analysis.images_total
        if total == 0:
            self._add("images_optimization", True, total, "No images to optimize")
            return

        ratio = self.analysis.images_with_alt / total
        passed = ratio >= MIN_ALT_RATIO
        if passed:
            message = "Images appear to be optimized"
        else:
            message = f"Only {ratio * 100:.0f}% of images have alt text (aim for {MIN_ALT_RATIO * 100:.0f}%+)"
        self._add("images_optimization", passed, total, message)

    # =========================================================================
    # Technical
    # =========================================================================

    def _check_meta_refresh_redirect(self):
        has_refresh = self.analysis.has_meta_refresh
        if has_refresh:
            message = "Page uses meta refresh redirect (not recommended for SEO)"
        else:
            message = "Page does not use meta refresh redirects"
        self._add("meta_refresh_redirect", not has_refresh, has_refresh, message)

    def _check_viewport_meta(self):
        has_viewport = self.analysis.has_viewport_meta
        if has_viewport:
            message = "Page has viewport meta tag"
        else:
            message = "Page is missing viewport meta tag (important for mobile)"
        self._add("viewport_meta", has_viewport, has_viewport, message)

    def _check_charset_declared(self):
        has_charset = self.analysis.has_charset
        message = "Page declares charset" if has_charset else "Page is missing charset declaration"
        self._add("charset_declared", has_charset, has_charset, message)

    def _check_structured_data(self):
        has_data = self.analysis.has_structured_data
        if has_data:
            message = "Page has structured data"
        else:
            message = "Page is missing structured data (JSON-LD or microdata)"
        self._add("structured_data", has_data, has_data, message)

    def _check_page_loading_speed(self):
        speed = estimate_loading_speed(self.analysis.word_count, self.analysis.images_total)
        passed = speed >= MIN_SPEED_SCORE
        if passed:
            message = f"Estimated loading speed score is {speed}/100"
        else:
            message = f"Page may load slowly (estimated score {speed}/100). Reduce images or content size"
        self._add("page_loading_speed", passed, speed, message)

    def _check_social_media_meta(self):
        has_og = self.analysis.has_open_graph
        has_twitter = self.analysis.has_twitter_card
        passed = has_og or has_twitter
        if has_og and has_twitter:
            message = "Page has Open Graph and Twitter Card tags"
        elif has_og:
            message = "Page has Open Graph tags"
        elif has_twitter:
            message = "Page has Twitter Card tags"
        else:
            message = "Page is missing social media meta tags (Open Graph or Twitter Card)"
        self._add("social_media_meta", passed, passed, message)
