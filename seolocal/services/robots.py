"""
robots.txt rule engine.

Parses robots.txt into per-agent allow/disallow sets and resolves a path by
longest-match precedence. Agents are consulted in order googlebot, then *;
the first agent with a matching pattern decides. Equal-length allow and
disallow matches resolve to allow.
"""

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from urllib.parse import urlsplit

import httpx

logger = logging.getLogger(__name__)

AGENT_PRECEDENCE = ("googlebot", "*")


@dataclass(frozen=True)
class RobotsRule:
    user_agent: str
    allow: tuple[str, ...] = field(default_factory=tuple)
    disallow: tuple[str, ...] = field(default_factory=tuple)


def parse_robots_txt(body: str) -> list[RobotsRule]:
    """Group Allow/Disallow lines under the preceding User-agent line."""
    rules: list[RobotsRule] = []
    current_agent: str | None = None
    allow: list[str] = []
    disallow: list[str] = []

    def flush():
        if current_agent is not None:
            rules.append(RobotsRule(current_agent, tuple(allow), tuple(disallow)))

    for raw_line in body.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        key, sep, value = line.partition(":")
        if not sep:
            continue

        key = key.strip().lower()
        value = value.strip()

        if key == "user-agent":
            flush()
            current_agent = value.lower()
            allow, disallow = [], []
        elif key == "allow":
            if current_agent is not None and value:
                allow.append(value)
        elif key == "disallow":
            if current_agent is not None and value:
                disallow.append(value)

    flush()
    return rules


@lru_cache(maxsize=512)
def _wildcard_regex(pattern: str) -> re.Pattern:
    return re.compile("^" + re.escape(pattern).replace(r"\*", ".*"))


def matches_robots_pattern(path: str, pattern: str) -> bool:
    if not pattern:
        return False
    if path.startswith(pattern):
        return True
    return _wildcard_regex(pattern).match(path) is not None


class RobotsRules:
    """Immutable set of parsed robots.txt rules."""

    def __init__(self, rules: list[RobotsRule] | None = None):
        self._rules = list(rules or [])

    @classmethod
    def from_text(cls, body: str) -> "RobotsRules":
        return cls(parse_robots_txt(body))

    @classmethod
    def allow_all(cls) -> "RobotsRules":
        return cls([])

    @property
    def rules(self) -> list[RobotsRule]:
        return list(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def is_disallowed(self, url_or_path: str) -> bool:
        rules = self._rules
        if not rules:
            return False

        path = url_or_path
        if not path.startswith("/"):
            try:
                path = urlsplit(url_or_path).path
            except ValueError:
                return False
        path = path or "/"

        for agent in AGENT_PRECEDENCE:
            allow = [p for r in rules if r.user_agent == agent for p in r.allow]
            disallow = [p for r in rules if r.user_agent == agent for p in r.disallow]

            longest = ""
            disallowed = False
            for pattern in allow:
                if len(pattern) > len(longest) and matches_robots_pattern(path, pattern):
                    longest = pattern
                    disallowed = False
            for pattern in disallow:
                if len(pattern) > len(longest) and matches_robots_pattern(path, pattern):
                    longest = pattern
                    disallowed = True

            if longest:
                return disallowed

        return False


def robots_url_for(base_url: str) -> str:
    parsed = urlsplit(base_url)
    return f"{parsed.scheme}://{parsed.netloc}/robots.txt"


async def fetch_robots_txt(
    base_url: str,
    client: httpx.AsyncClient | None = None,
    timeout: float = 10,
    user_agent: str | None = None,
) -> RobotsRules:
    """Fetch and parse robots.txt; any failure means allow everything."""
    robots_url = robots_url_for(base_url)
    headers = {"User-Agent": user_agent} if user_agent else None

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as own_client:
                response = await own_client.get(robots_url, headers=headers)
        else:
            response = await client.get(robots_url, headers=headers, timeout=timeout)
    except Exception as e:
        logger.warning(f"Could not fetch robots.txt from {robots_url}: {e}")
        return RobotsRules.allow_all()

    if response.status_code != 200:
        logger.info(f"No robots.txt at {robots_url} (HTTP {response.status_code}), allowing all")
        return RobotsRules.allow_all()

    rules = RobotsRules.from_text(response.text)
    logger.info(f"Loaded robots.txt from {robots_url} ({len(rules)} user-agent blocks)")
    return rules
