"""
Unit tests for the SEO checker and page scoring.
"""
import pytest

from seolocal.schemas.audit import CheckResult
from seolocal.services.analyzer import AnalysisResult, analyze_content
from seolocal.services.checker import (
    CHECK_WEIGHTS,
    SEOChecker,
    calculate_score,
    estimate_loading_speed,
    round_half_up,
)

from tests.fixtures.sample_pages import (
    BASE_URL,
    NOINDEX_PAGE_HTML,
    PERFECT_PAGE_HTML,
    POOR_SEO_PAGE_HTML,
)


def run_checks(analysis: AnalysisResult, status_code: int = 200):
    return SEOChecker(analysis, status_code).run_all_checks()


def check(passed: bool, weight: int) -> CheckResult:
    return CheckResult(passed=passed, value=passed, message="", weight=weight)


class TestIndexability:
    """Test the not-indexable short circuit."""

    def test_404_not_indexable(self):
        """Status 404 yields no checks and a zero score regardless of content."""
        analysis = analyze_content(PERFECT_PAGE_HTML, f"{BASE_URL}/perfect-page")
        results = run_checks(analysis, 404)

        assert results.indexable is False
        assert results.score == 0
        assert results.checks == {}
        assert results.indexability_reason == "HTTP 404 - Page not accessible"

    def test_noindex_not_indexable(self):
        analysis = analyze_content(NOINDEX_PAGE_HTML, f"{BASE_URL}/staging")
        results = run_checks(analysis)

        assert results.indexable is False
        assert results.score == 0
        assert results.checks == {}
        assert results.indexability_reason == "Meta robots noindex directive"

    def test_status_takes_precedence_over_noindex(self):
        analysis = analyze_content(NOINDEX_PAGE_HTML, f"{BASE_URL}/staging")
        results = run_checks(analysis, 500)

        assert results.indexability_reason == "HTTP 500 - Page not accessible"


class TestCheckBattery:
    """Test the full check battery on fixture pages."""

    def test_all_checks_run(self):
        analysis = analyze_content(PERFECT_PAGE_HTML, f"{BASE_URL}/perfect-page")
        results = run_checks(analysis)

        assert set(results.checks) == set(CHECK_WEIGHTS)
        assert len(results.checks) == 26
        for name, result in results.checks.items():
            assert result.weight == CHECK_WEIGHTS[name]

    def test_perfect_page_scores_100(self):
        analysis = analyze_content(PERFECT_PAGE_HTML, f"{BASE_URL}/perfect-page")
        results = run_checks(analysis)

        failed = [name for name, result in results.checks.items() if not result.passed]
        assert failed == []
        assert results.score == 100.0
        assert results.issues_count == 0

    def test_poor_page(self):
        analysis = analyze_content(POOR_SEO_PAGE_HTML, f"{BASE_URL}/poor")
        results = run_checks(analysis)

        assert results.indexable is True
        assert results.checks["title_length"].passed is False
        assert results.checks["title_length"].message == "Title is too short (3 chars). Consider 25-65 characters"
        assert results.checks["meta_description_presence"].passed is False
        assert results.checks["h1_presence"].passed is False
        assert results.checks["missing_alt_attribute"].value == 1
        assert results.checks["viewport_meta"].message == "Page is missing viewport meta tag (important for mobile)"
        assert results.issues_count == 16
        assert results.score == 38.8


class TestBoundaries:
    """Test pass/fail thresholds."""

    @pytest.mark.parametrize("length,passed", [(24, False), (25, True), (65, True), (66, False)])
    def test_title_length(self, length, passed):
        analysis = AnalysisResult(url=f"{BASE_URL}/", title="t" * length, title_length=length)
        assert run_checks(analysis).checks["title_length"].passed is passed

    @pytest.mark.parametrize("length,passed", [(109, False), (110, True), (155, True), (156, False)])
    def test_description_length(self, length, passed):
        analysis = AnalysisResult(url=f"{BASE_URL}/", description_length=length)
        assert run_checks(analysis).checks["meta_description_length"].passed is passed

    @pytest.mark.parametrize("length,passed", [(14, False), (15, True), (65, True), (66, False)])
    def test_h1_length(self, length, passed):
        analysis = AnalysisResult(url=f"{BASE_URL}/", h1=["h" * length], h1_count=1)
        assert run_checks(analysis).checks["h1_length"].passed is passed

    def test_content_length(self):
        assert run_checks(AnalysisResult(url="u", word_count=249)).checks["content_length"].passed is False
        assert run_checks(AnalysisResult(url="u", word_count=250)).checks["content_length"].passed is True

    def test_link_counts(self):
        none = run_checks(AnalysisResult(url="u", internal_links_count=0, external_links_count=16))
        assert none.checks["outlinks_count"].passed is False
        assert none.checks["external_links_count"].passed is False

        some = run_checks(AnalysisResult(url="u", internal_links_count=100, external_links_count=15))
        assert some.checks["outlinks_count"].passed is True
        assert some.checks["external_links_count"].passed is True

        many = run_checks(AnalysisResult(url="u", internal_links_count=101))
        assert many.checks["outlinks_count"].passed is False

    def test_image_alt_ratio(self):
        results = run_checks(AnalysisResult(url="u", images_total=5, images_with_alt=4, images_without_alt=1))

        assert results.checks["images_optimization"].passed is True
        assert results.checks["missing_alt_attribute"].passed is False

    def test_no_images_pass(self):
        results = run_checks(AnalysisResult(url="u"))

        assert results.checks["images_optimization"].passed is True
        assert results.checks["missing_alt_attribute"].passed is True

    def test_unique_h1(self):
        results = run_checks(AnalysisResult(url="u", h1=["One heading", "Two heading"], h1_count=2))

        assert results.checks["h1_presence"].passed is True
        assert results.checks["unique_h1_heading"].passed is False
        assert results.checks["unique_h1_heading"].message == "Page has 2 H1 headings (should have exactly 1)"


class TestCanonical:
    """Test canonical comparison."""

    @pytest.mark.parametrize("canonical", [
        f"{BASE_URL}/blog/post",
        f"{BASE_URL}/blog/post/",
        "/blog/post",
        "HTTP://LOCALHOST:3000/blog/post#section",
    ])
    def test_matching_canonical(self, canonical):
        analysis = AnalysisResult(url=f"{BASE_URL}/blog/post", canonical=canonical)
        assert run_checks(analysis).checks["url_matches_canonical"].passed is True

    def test_mismatched_canonical(self):
        analysis = AnalysisResult(url=f"{BASE_URL}/blog/post", canonical=f"{BASE_URL}/blog/other")
        results = run_checks(analysis)

        assert results.checks["canonical_url_presence"].passed is True
        assert results.checks["url_matches_canonical"].passed is False

    def test_missing_canonical(self):
        results = run_checks(AnalysisResult(url=f"{BASE_URL}/"))

        assert results.checks["canonical_url_presence"].passed is False
        assert results.checks["url_matches_canonical"].message == "No canonical URL to compare"


class TestHeuristics:
    """Test loading-speed and social checks."""

    def test_loading_speed_estimate(self):
        assert estimate_loading_speed(word_count=500, image_count=3) == 100
        assert estimate_loading_speed(word_count=0, image_count=25) == 70
        assert estimate_loading_speed(word_count=0, image_count=100) == 50
        assert estimate_loading_speed(word_count=4000, image_count=0) == 80
        assert estimate_loading_speed(word_count=100000, image_count=100) == 20

    def test_loading_speed_check(self):
        fast = run_checks(AnalysisResult(url="u", images_total=25))
        slow = run_checks(AnalysisResult(url="u", images_total=26))

        assert fast.checks["page_loading_speed"].passed is True
        assert fast.checks["page_loading_speed"].value == 70
        assert slow.checks["page_loading_speed"].passed is False

    @pytest.mark.parametrize("og,twitter,passed", [
        (True, False, True),
        (False, True, True),
        (False, False, False),
    ])
    def test_social_media_meta(self, og, twitter, passed):
        analysis = AnalysisResult(url="u", has_open_graph=og, has_twitter_card=twitter)
        assert run_checks(analysis).checks["social_media_meta"].passed is passed


class TestScoring:
    """Test weighted score calculation."""

    def test_weighted_example(self):
        """Passed weight 100 and failed weight 50 score 66.7."""
        assert calculate_score({"a": check(True, 100), "b": check(False, 50)}) == 66.7

    def test_no_checks_scores_zero(self):
        assert calculate_score({}) == 0.0

    def test_all_failed(self):
        assert calculate_score({"a": check(False, 10)}) == 0.0

    def test_round_half_up(self):
        assert round_half_up(12.25) == 12.3
        assert round_half_up(12.24) == 12.2
        assert round_half_up(0.05) == 0.1

    def test_check_values_keep_type(self):
        results = run_checks(analyze_content(PERFECT_PAGE_HTML, f"{BASE_URL}/perfect-page"))

        assert results.checks["response_status_code"].value == 200
        assert results.checks["viewport_meta"].value is True
        assert isinstance(results.checks["title_presence"].value, str)

    def test_results_to_dict(self):
        results = run_checks(analyze_content(POOR_SEO_PAGE_HTML, f"{BASE_URL}/poor"))
        data = results.to_dict()

        assert data["indexable"] is True
        assert data["score"] == 38.8
        assert data["checks"]["title_length"] == {
            "passed": False,
            "value": 3,
            "message": "Title is too short (3 chars). Consider 25-65 characters",
            "weight": 80,
        }
