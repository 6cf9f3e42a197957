"""
Unit tests for the robots.txt rule engine.
"""
import httpx
import pytest

from seolocal.services.robots import (
    RobotsRule,
    RobotsRules,
    fetch_robots_txt,
    matches_robots_pattern,
    parse_robots_txt,
    robots_url_for,
)


SAMPLE_ROBOTS = """
# Sample robots file
Allow: /ignored-before-agent

User-agent: *
Disallow: /a
Allow: /a/b
Disallow:

User-Agent: Googlebot
DISALLOW: /private
malformed line without colon
"""


class TestParseRobotsTxt:
    """Test robots.txt parsing."""

    def test_blocks_grouped_by_agent(self):
        rules = parse_robots_txt(SAMPLE_ROBOTS)

        assert rules == [
            RobotsRule(user_agent="*", allow=("/a/b",), disallow=("/a",)),
            RobotsRule(user_agent="googlebot", allow=(), disallow=("/private",)),
        ]

    def test_empty_body(self):
        assert parse_robots_txt("") == []

    def test_directives_before_agent_ignored(self):
        rules = parse_robots_txt("Disallow: /x\nUser-agent: *\nDisallow: /y\n")
        assert rules == [RobotsRule(user_agent="*", allow=(), disallow=("/y",))]


class TestPatternMatching:
    """Test literal and wildcard patterns."""

    def test_literal_prefix(self):
        assert matches_robots_pattern("/admin/users", "/admin")
        assert not matches_robots_pattern("/public/admin", "/admin")

    def test_wildcard(self):
        assert matches_robots_pattern("/files/report.pdf", "/*.pdf")
        assert matches_robots_pattern("/shop/cart/checkout", "/shop/*/checkout")
        assert not matches_robots_pattern("/shop/checkout", "/shop/*/checkout")

    def test_regex_characters_escaped(self):
        assert not matches_robots_pattern("/search", "/sea.ch")
        assert matches_robots_pattern("/sea.ch/x", "/sea.ch")


class TestIsDisallowed:
    """Test longest-match precedence."""

    def test_longest_match_wins(self):
        """Disallow: /a + Allow: /a/b allows /a/b/c and blocks /a/x."""
        rules = RobotsRules.from_text("User-agent: *\nDisallow: /a\nAllow: /a/b\n")

        assert rules.is_disallowed("/a/b/c") is False
        assert rules.is_disallowed("/a/x") is True
        assert rules.is_disallowed("/other") is False

    def test_accepts_full_urls(self):
        rules = RobotsRules.from_text("User-agent: *\nDisallow: /private\n")
        assert rules.is_disallowed("http://localhost:3000/private/page") is True
        assert rules.is_disallowed("http://localhost:3000/") is False

    def test_equal_length_tie_allows(self):
        rules = RobotsRules.from_text("User-agent: *\nDisallow: /page\nAllow: /page\n")
        assert rules.is_disallowed("/page") is False

    def test_googlebot_consulted_first(self):
        rules = RobotsRules.from_text(
            "User-agent: *\nDisallow: /\n\nUser-agent: googlebot\nDisallow: /secret\n"
        )
        assert rules.is_disallowed("/secret") is True
        # googlebot has no matching pattern, so * decides
        assert rules.is_disallowed("/blog") is True

    def test_googlebot_allow_overrides_star(self):
        rules = RobotsRules.from_text(
            "User-agent: *\nDisallow: /blog\n\nUser-agent: Googlebot\nAllow: /blog\n"
        )
        assert rules.is_disallowed("/blog/post") is False

    def test_multiple_blocks_for_same_agent_merge(self):
        rules = RobotsRules.from_text(
            "User-agent: *\nDisallow: /one\n\nUser-agent: *\nDisallow: /two\n"
        )
        assert rules.is_disallowed("/one") is True
        assert rules.is_disallowed("/two") is True

    def test_other_agents_ignored(self):
        rules = RobotsRules.from_text("User-agent: bingbot\nDisallow: /\n")
        assert rules.is_disallowed("/anything") is False

    def test_allow_all(self):
        rules = RobotsRules.allow_all()
        assert len(rules) == 0
        assert rules.is_disallowed("/admin") is False


class TestFetchRobotsTxt:
    """Test robots.txt retrieval."""

    def test_robots_url(self):
        assert robots_url_for("http://localhost:3000/blog/post") == "http://localhost:3000/robots.txt"

    @pytest.mark.asyncio
    async def test_fetch_parses_rules(self):
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, text="User-agent: *\nDisallow: /admin\n")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            rules = await fetch_robots_txt("http://localhost:3000/", client=client)

        assert requested == ["http://localhost:3000/robots.txt"]
        assert rules.is_disallowed("/admin/settings") is True

    @pytest.mark.asyncio
    async def test_non_200_allows_everything(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(404, text="Not Found"))

        async with httpx.AsyncClient(transport=transport) as client:
            rules = await fetch_robots_txt("http://localhost:3000", client=client)

        assert len(rules) == 0

    @pytest.mark.asyncio
    async def test_transport_error_allows_everything(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            rules = await fetch_robots_txt("http://localhost:3000", client=client)

        assert rules.is_disallowed("/anything") is False
