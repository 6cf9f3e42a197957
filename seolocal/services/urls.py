"""
URL helpers shared by the crawler, the analyzer and the checker.
"""
import logging
import re
from urllib.parse import urljoin, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

SKIPPED_SCHEMES = ("javascript:", "mailto:")


def normalize_url(raw_url: str) -> str:
    """Drop the fragment, lower-case scheme and host, strip trailing slashes.

    The root path is always "/". The function is idempotent.
    """
    try:
        parsed = urlsplit(raw_url)
    except ValueError:
        return raw_url

    path = parsed.path
    if path != "/":
        path = path.rstrip("/") or "/"

    return urlunsplit((parsed.scheme.lower(), parsed.netloc.lower(), path, parsed.query, ""))


def resolve_url(base: str, href: str) -> str:
    """Resolve href against base; returns "" for links that cannot be followed."""
    href = (href or "").strip()
    if not href:
        return ""
    if href.lower().startswith(SKIPPED_SCHEMES):
        return ""
    try:
        return urljoin(base, href)
    except ValueError:
        return ""


def get_host(url: str) -> str:
    try:
        return urlsplit(url).netloc.lower()
    except ValueError:
        return ""


def is_same_host(url: str, base_url: str) -> bool:
    host = get_host(url)
    return bool(host) and host == get_host(base_url)


def matches_ignore_pattern(url: str, patterns: list[str]) -> bool:
    """A pattern matches as a substring, or as a regex when written as /.../."""
    for pattern in patterns:
        if not pattern:
            continue
        if len(pattern) > 2 and pattern.startswith("/") and pattern.endswith("/"):
            try:
                if re.search(pattern[1:-1], url):
                    return True
            except re.error as e:
                logger.debug(f"Invalid ignore regex {pattern!r}: {e}")
        if pattern in url:
            return True
    return False


def extract_path_from_url(raw_url: str) -> str:
    """Path plus query and fragment, without scheme and host."""
    try:
        parsed = urlsplit(raw_url)
    except ValueError:
        if "://" in raw_url:
            rest = raw_url.split("://", 1)[1]
            slash = rest.find("/")
            if slash != -1:
                return rest[slash:]
        return raw_url

    path = parsed.path or "/"
    if parsed.query:
        path += "?" + parsed.query
    if parsed.fragment:
        path += "#" + parsed.fragment
    return path
