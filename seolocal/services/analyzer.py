"""
Content analyzer.

Turns the rendered HTML of one page into the signals the checker scores:
metadata, headings, word count, links, images, technical flags, robots
meta directives, structured data and language.
"""

import json
import logging
import re
from dataclasses import dataclass, field, asdict
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from seolocal.core.exceptions import AnalysisError
from seolocal.services.urls import get_host, resolve_url

logger = logging.getLogger(__name__)

# Elements excluded from the word count
NON_CONTENT_TAGS = ["script", "style", "nav", "header", "footer"]


@dataclass
class ParsedURL:
    scheme: str = ""
    host: str = ""
    port: str = ""
    path: str = ""
    query: str = ""
    fragment: str = ""

    @classmethod
    def from_url(cls, url: str) -> "ParsedURL":
        try:
            parsed = urlsplit(url)
            port = str(parsed.port) if parsed.port else ""
        except ValueError:
            return cls()
        return cls(
            scheme=parsed.scheme,
            host=parsed.netloc,
            port=port,
            path=parsed.path,
            query=parsed.query,
            fragment=parsed.fragment,
        )


@dataclass
class LinkInfo:
    url: str
    anchor_text: str = ""
    nofollow: bool = False


@dataclass
class AnalysisResult:
    """Everything extracted from a single page."""
    url: str
    parsed_url: ParsedURL = field(default_factory=ParsedURL)

    # Metadata
    title: str = ""
    description: str = ""
    meta: dict[str, str] = field(default_factory=dict)
    language: str = ""

    # Headings
    h1: list[str] = field(default_factory=list)
    h2: list[str] = field(default_factory=list)
    h1_count: int = 0
    h2_count: int = 0
    h3_count: int = 0
    h4_count: int = 0
    h5_count: int = 0
    h6_count: int = 0

    # Content
    word_count: int = 0
    title_length: int = 0
    description_length: int = 0

    # Links
    internal_links: list[LinkInfo] = field(default_factory=list)
    external_links: list[LinkInfo] = field(default_factory=list)
    internal_links_count: int = 0
    external_links_count: int = 0
    total_links_count: int = 0

    # Images
    images_total: int = 0
    images_with_alt: int = 0
    images_without_alt: int = 0

    # Technical
    canonical: str = ""
    has_viewport_meta: bool = False
    has_charset: bool = False
    has_meta_refresh: bool = False
    has_open_graph: bool = False
    has_twitter_card: bool = False

    # Robots meta
    noindex: bool = False
    nofollow: bool = False
    nocache: bool = False

    # Structured data
    has_structured_data: bool = False
    structured_data_types: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def analyze_content(html: str, page_url: str) -> AnalysisResult:
    """Analyze rendered HTML.

    Raises AnalysisError only when the document cannot be parsed at all.
    """
    if html is None:
        raise AnalysisError("failed to parse HTML: no content")
    try:
        soup = BeautifulSoup(html, "lxml")
    except Exception as e:
        raise AnalysisError(f"failed to parse HTML: {e}") from e

    result = AnalysisResult(url=page_url, parsed_url=ParsedURL.from_url(page_url))

    _extract_metadata(soup, result)
    _extract_headings(soup, result)
    _extract_links(soup, page_url, result)
    _extract_images(soup, result)
    _extract_technical(soup, result)
    # Destructive; must run last
    _extract_content(soup, result)

    return result


def _extract_metadata(soup: BeautifulSoup, result: AnalysisResult):
    title_tag = soup.find("title")
    if title_tag:
        result.title = title_tag.get_text().strip()

    desc_tag = soup.find("meta", attrs={"name": "description"})
    if desc_tag:
        result.description = (desc_tag.get("content") or "").strip()

    for meta in soup.find_all("meta"):
        content = meta.get("content")
        if content is None:
            continue
        if meta.get("name"):
            result.meta[meta["name"]] = content
        if meta.get("property"):
            result.meta[meta["property"]] = content

    robots_tag = soup.find("meta", attrs={"name": "robots"})
    robots_content = (robots_tag.get("content") or "").lower() if robots_tag else ""
    if robots_content:
        result.noindex = "noindex" in robots_content
        result.nofollow = "nofollow" in robots_content
        result.nocache = "nocache" in robots_content or "noarchive" in robots_content


def _extract_headings(soup: BeautifulSoup, result: AnalysisResult):
    result.h1 = [text for text in (h.get_text().strip() for h in soup.find_all("h1")) if text]
    result.h2 = [text for text in (h.get_text().strip() for h in soup.find_all("h2")) if text]
    result.h1_count = len(result.h1)
    result.h2_count = len(result.h2)
    result.h3_count = len(soup.find_all("h3"))
    result.h4_count = len(soup.find_all("h4"))
    result.h5_count = len(soup.find_all("h5"))
    result.h6_count = len(soup.find_all("h6"))


def _extract_links(soup: BeautifulSoup, page_url: str, result: AnalysisResult):
    page_host = get_host(page_url)

    for a in soup.find_all("a", href=True):
        full_url = resolve_url(page_url, a["href"])
        if not full_url:
            continue

        rel = a.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()

        link = LinkInfo(
            url=full_url,
            anchor_text=a.get_text().strip(),
            nofollow=any(token.lower() == "nofollow" for token in rel),
        )

        if page_host and get_host(full_url) == page_host:
            result.internal_links.append(link)
        else:
            result.external_links.append(link)

    result.internal_links_count = len(result.internal_links)
    result.external_links_count = len(result.external_links)
    result.total_links_count = result.internal_links_count + result.external_links_count


def _extract_images(soup: BeautifulSoup, result: AnalysisResult):
    for img in soup.find_all("img"):
        result.images_total += 1
        if (img.get("alt") or "").strip():
            result.images_with_alt += 1
        else:
            result.images_without_alt += 1


def _extract_technical(soup: BeautifulSoup, result: AnalysisResult):
    canonical_tag = soup.find("link", rel="canonical")
    if canonical_tag:
        result.canonical = (canonical_tag.get("href") or "").strip()

    result.has_viewport_meta = soup.find("meta", attrs={"name": "viewport"}) is not None
    result.has_charset = (
        soup.find("meta", charset=True) is not None
        or soup.find("meta", attrs={"http-equiv": re.compile(r"^content-type$", re.I)}) is not None
    )
    result.has_meta_refresh = soup.find("meta", attrs={"http-equiv": re.compile(r"^refresh$", re.I)}) is not None
    result.has_open_graph = soup.find("meta", property=re.compile(r"^og:")) is not None
    result.has_twitter_card = soup.find("meta", attrs={"name": re.compile(r"^twitter:")}) is not None

    json_ld = soup.find_all("script", type="application/ld+json")
    result.has_structured_data = bool(json_ld) or soup.find(attrs={"itemscope": True}) is not None
    result.structured_data_types = _structured_data_types(json_ld)

    html_tag = soup.find("html")
    if html_tag and html_tag.get("lang"):
        result.language = html_tag["lang"]


def _structured_data_types(scripts) -> list[str]:
    types: list[str] = []
    for script in scripts:
        try:
            data = json.loads(script.string or "")
        except (json.JSONDecodeError, TypeError):
            logger.debug("Skipping unparseable JSON-LD block")
            continue

        items = data if isinstance(data, list) else [data]
        for item in items:
            if not isinstance(item, dict):
                continue
            schema_type = item.get("@type")
            if isinstance(schema_type, list):
                types.extend(str(t) for t in schema_type)
            elif schema_type:
                types.append(str(schema_type))
    return types


def _extract_content(soup: BeautifulSoup, result: AnalysisResult):
    for tag in soup.find_all(NON_CONTENT_TAGS):
        tag.extract()

    body = soup.find("body") or soup
    text = re.sub(r"\s+", " ", body.get_text().strip())

    result.word_count = len(text.split())
    result.title_length = len(result.title)
    result.description_length = len(result.description)
