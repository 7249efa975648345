"""
Contactmine parser - fetch a URL and normalize it into ParsedContent.
"""

import hashlib
import html as html_lib
import math
import re
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup, Tag
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .errors import ParsingError
from .models import ContentFormat, ContentMetadata, ParsedContent

WORDS_PER_MINUTE = 200

STRIP_TAGS = ["script", "style", "nav", "footer", "header", "aside", "iframe", "noscript"]

URL_REGEX = re.compile(r"https?://[^\s<>\"'()\[\]]+", re.I)
EMAIL_REGEX = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_REGEX = re.compile(r"\+?\d[\d\s().-]{7,}\d")

CONTACT_KEYWORDS = ("contact", "email", "reach", "twitter", "linkedin", "follow", "phone", "tips")

STOPWORDS: dict[str, frozenset[str]] = {
    "en": frozenset({"the", "and", "is", "in", "to", "of", "a", "that", "it", "with"}),
    "fr": frozenset({"le", "la", "de", "et", "est", "dans", "pour", "que", "il", "avec"}),
    "es": frozenset({"el", "la", "de", "y", "es", "en", "para", "que", "con", "por"}),
    "de": frozenset({"der", "die", "und", "ist", "in", "zu", "den", "das", "mit"}),
}


@dataclass
class ParserConfig:
    """Parser configuration."""

    timeout: float = 30.0
    max_retries: int = 3
    retry_backoff: float = 1.0  # Exponential multiplier, seconds
    user_agent: str = "Contactmine/0.1 (+media contact research)"
    cache_ttl: float = 3600.0  # Parse cache, seconds
    cache_max_entries: int = 500
    transport: httpx.BaseTransport | None = None  # Injected in tests


@dataclass
class ParseOptions:
    """Per-call parse options."""

    format: ContentFormat = "markdown"
    include_links: bool = True
    include_images: bool = True


@dataclass
class ParseOutcome:
    """One URL's result from parse_multiple_content."""

    url: str
    content: ParsedContent | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.content is not None


@dataclass
class _CachedParse:
    content: ParsedContent
    expires_at: float
    hits: int = 0


# =============================================================================
# PURE UTILITIES
# =============================================================================


def is_valid_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc) and " " not in parsed.netloc


def extract_urls(text: str) -> list[str]:
    """All http(s) URLs in text, first occurrence order, deduped."""
    seen: dict[str, None] = {}
    for match in URL_REGEX.finditer(text or ""):
        url = match.group(0).rstrip(".,;:!?")
        if is_valid_url(url):
            seen.setdefault(url, None)
    return list(seen)


def extract_emails(text: str) -> list[str]:
    """All email addresses in text, lowercased and deduped."""
    seen: dict[str, None] = {}
    for match in EMAIL_REGEX.finditer(text or ""):
        seen.setdefault(match.group(0).lower(), None)
    return list(seen)


def detect_language(text: str) -> str:
    """
    Best-guess ISO code from stopword hits in the first 1000 chars.

    Returns "unknown" with fewer than three distinct stopword hits or when the
    top two languages tie.
    """
    sample = (text or "")[:1000].lower()
    words = set(re.findall(r"[^\W\d_]+", sample))
    if not words:
        return "unknown"

    scores = sorted(
        ((len(words & stopwords), lang) for lang, stopwords in STOPWORDS.items()),
        reverse=True,
    )
    best_score, best_lang = scores[0]
    runner_up = scores[1][0]
    if best_score <= 2 or runner_up == best_score:
        return "unknown"
    return best_lang


def normalize_whitespace(text: str) -> str:
    """Collapse runs of spaces and drop blank lines."""
    lines = [re.sub(r"[ \t\xa0]+", " ", line).strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


def count_words(text: str) -> int:
    return len(text.split())


def reading_time(word_count: int) -> int:
    return math.ceil(word_count / WORDS_PER_MINUTE) if word_count else 0


def get_content_summary(content: str, max_length: int = 200) -> str:
    """First sentences of content that fit in max_length; hard cut with '...' otherwise."""
    text = " ".join(content.split())
    if len(text) <= max_length:
        return text

    summary = ""
    for sentence in re.split(r"(?<=[.!?])\s+", text):
        candidate = f"{summary} {sentence}".strip()
        if len(candidate) > max_length:
            break
        summary = candidate
    if summary:
        return summary
    return text[: max_length - 3].rstrip() + "..."


def has_contact_indicators(text: str) -> bool:
    """True when text carries an email, a phone number, an @handle or a contact keyword."""
    if not text:
        return False
    if EMAIL_REGEX.search(text) or PHONE_REGEX.search(text):
        return True
    if re.search(r"(?<![\w@])@\w{2,}", text):
        return True
    lower = text.lower()
    return any(k in lower for k in CONTACT_KEYWORDS)


def parse_cache_key(url: str, fmt: str) -> str:
    return hashlib.md5(f"{url}:{fmt}".encode()).hexdigest()


# =============================================================================
# HTML HANDLING
# =============================================================================


def _meta(soup: BeautifulSoup, *names: str) -> str | None:
    """First non-empty content of <meta name=...> or <meta property=...>."""
    for name in names:
        tag = soup.find("meta", attrs={"name": name}) or soup.find("meta", attrs={"property": name})
        if tag and tag.get("content", "").strip():
            return html_lib.unescape(tag["content"].strip())
    return None


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.strptime(value[:10], "%Y-%m-%d")
    except ValueError:
        return None


def _find_author(soup: BeautifulSoup) -> str | None:
    author = _meta(soup, "author", "article:author", "twitter:creator")
    if author and not author.startswith("http"):
        return author
    for selector in ('[rel="author"]', '[itemprop="author"]', ".byline", ".author"):
        node = soup.select_one(selector)
        if node:
            text = node.get_text(" ", strip=True)
            text = re.sub(r"^by\s+", "", text, flags=re.I)
            if text:
                return text
    return None


def _find_published(soup: BeautifulSoup) -> datetime | None:
    value = _meta(soup, "article:published_time", "datePublished", "date", "pubdate")
    if not value:
        time_tag = soup.find("time", attrs={"datetime": True})
        if time_tag:
            value = time_tag["datetime"]
    return _parse_datetime(value)


def html_to_markdown(node: Tag) -> str:
    """Minimal block-level markdown: headings, paragraphs, list items, links inline."""
    for a in node.find_all("a", href=True):
        label = a.get_text(" ", strip=True)
        if label:
            a.replace_with(f"[{label}]({a['href']})")

    blocks = []
    for el in node.find_all(["h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "blockquote"]):
        # Nested blocks are emitted by their own element
        if el.find_parent(["p", "li", "blockquote"]) is not None:
            continue
        text = " ".join(el.get_text(" ", strip=True).split())
        if not text:
            continue
        if el.name.startswith("h"):
            blocks.append("#" * int(el.name[1]) + " " + text)
        elif el.name == "li":
            blocks.append(f"- {text}")
        elif el.name == "blockquote":
            blocks.append(f"> {text}")
        else:
            blocks.append(text)

    if not blocks:
        return normalize_whitespace(node.get_text("\n", strip=True))
    return "\n\n".join(blocks)


# =============================================================================
# PARSER
# =============================================================================


class ContentParser:
    """HTTP fetch + HTML normalization with a short-lived parse cache."""

    def __init__(self, config: ParserConfig | None = None, clock: Callable[[], float] = time.time):
        self.config = config or ParserConfig()
        self._clock = clock
        self._cache: dict[str, _CachedParse] = {}
        self._lock = threading.Lock()
        self._client = httpx.Client(
            timeout=self.config.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.config.user_agent},
            transport=self.config.transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ContentParser":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -- cache ---------------------------------------------------------------

    def _cached(self, key: str) -> ParsedContent | None:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._cache[key]
                return None
            entry.hits += 1
            return entry.content

    def _store(self, key: str, content: ParsedContent) -> None:
        with self._lock:
            now = self._clock()
            for stale in [k for k, e in self._cache.items() if e.expires_at <= now]:
                del self._cache[stale]
            self._cache.pop(key, None)
            # Oldest first; every entry shares one TTL
            while self._cache and len(self._cache) >= self.config.cache_max_entries:
                del self._cache[next(iter(self._cache))]
            self._cache[key] = _CachedParse(content, now + self.config.cache_ttl)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    # -- fetching ------------------------------------------------------------

    def _fetch_with_retry(self, url: str) -> httpx.Response:
        """GET with retry on transport errors; HTTP status is checked by the caller."""
        retrying = Retrying(
            stop=stop_after_attempt(self.config.max_retries),
            wait=wait_exponential(multiplier=self.config.retry_backoff, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        return retrying(self._client.get, url)

    def parse(self, url: str, options: ParseOptions | None = None) -> ParsedContent:
        """Fetch and normalize url; raises ParsingError on any failure."""
        options = options or ParseOptions()
        if not is_valid_url(url):
            raise ParsingError(f"Invalid URL: {url!r}", code="INVALID_URL", details={"url": url})

        key = parse_cache_key(url, options.format)
        cached = self._cached(key)
        if cached is not None:
            return cached

        try:
            resp = self._fetch_with_retry(url)
        except httpx.TimeoutException as e:
            raise ParsingError(
                f"Timed out fetching {url}", code="CONTENT_TIMEOUT", details={"url": url}
            ) from e
        except httpx.HTTPError as e:
            raise ParsingError(
                f"Failed to fetch {url}: {e}", code="CONTENT_SCRAPE_FAILED", details={"url": url}
            ) from e

        if not resp.is_success:
            raise ParsingError(
                f"Failed to fetch {url}: HTTP {resp.status_code}",
                code="CONTENT_SCRAPE_FAILED",
                details={"url": url, "status_code": resp.status_code},
            )

        content_type = resp.headers.get("content-type", "text/html").lower()
        is_markup = "html" in content_type or "xml" in content_type
        if not (is_markup or content_type.startswith("text/")):
            raise ParsingError(
                f"Unsupported content type {content_type!r} for {url}",
                code="CONTENT_PARSE_FAILED",
                details={"url": url, "content_type": content_type},
            )
        try:
            if is_markup:
                parsed = self.parse_html(url, resp.text, options)
            else:
                parsed = self.parse_text(url, resp.text)
        except Exception as e:
            raise ParsingError(
                f"Failed to parse {url}: {e}", code="CONTENT_PARSE_FAILED", details={"url": url}
            ) from e

        if not parsed.content.strip():
            raise ParsingError(f"No content extracted from {url}", code="CONTENT_PARSE_FAILED")

        self._store(key, parsed)
        return parsed

    def parse_text(self, url: str, text: str) -> ParsedContent:
        body = normalize_whitespace(text)
        words = count_words(body)
        language = detect_language(body)
        return ParsedContent(
            url=url,
            content=body,
            language=language,
            metadata=ContentMetadata(
                language=language,
                domain=urlparse(url).netloc.lower(),
                word_count=words,
                reading_time=reading_time(words),
            ),
        )

    def parse_html(self, url: str, html: str, options: ParseOptions | None = None) -> ParsedContent:
        """Normalize a fetched HTML document."""
        options = options or ParseOptions()
        soup = BeautifulSoup(html, "lxml")

        og_title = _meta(soup, "og:title")
        title_tag = soup.find("title")
        title = og_title or (title_tag.get_text(strip=True) if title_tag else None)
        if not title:
            h1 = soup.find("h1")
            title = h1.get_text(" ", strip=True) if h1 else None

        description = _meta(soup, "description", "og:description")
        keywords_raw = _meta(soup, "keywords") or ""
        keywords = [k.strip() for k in keywords_raw.split(",") if k.strip()]
        author = _find_author(soup)
        published_at = _find_published(soup)

        html_tag = soup.find("html")
        lang_attr = html_tag.get("lang", "") if html_tag else ""

        links: list[str] = []
        images: list[str] = []
        if options.include_links:
            for a in soup.find_all("a", href=True):
                href = urljoin(url, a["href"])
                if is_valid_url(href) and href not in links:
                    links.append(href)
        if options.include_images:
            for img in soup.find_all("img", src=True):
                src = urljoin(url, img["src"])
                if is_valid_url(src) and src not in images:
                    images.append(src)

        for tag in soup(STRIP_TAGS):
            tag.decompose()
        main = soup.find("article") or soup.find("main") or soup.body or soup

        text = normalize_whitespace(main.get_text("\n", strip=True))
        if options.format == "markdown":
            body = html_to_markdown(main)
        elif options.format == "html":
            body = html_lib.unescape(str(main))
        else:
            body = text

        language = lang_attr.split("-")[0].lower() if lang_attr else detect_language(text)
        words = count_words(text)

        return ParsedContent(
            url=url,
            title=title,
            author=author,
            published_at=published_at,
            description=description,
            content=body,
            html=html,
            links=links,
            images=images,
            language=language,
            metadata=ContentMetadata(
                description=description,
                keywords=keywords,
                language=language,
                og_title=og_title,
                og_description=_meta(soup, "og:description"),
                og_image=_meta(soup, "og:image"),
                domain=urlparse(url).netloc.lower(),
                word_count=words,
                reading_time=reading_time(words),
            ),
        )

    def parse_multiple_content(
        self,
        urls: list[str],
        max_concurrent: int = 5,
        options: ParseOptions | None = None,
    ) -> list[ParseOutcome]:
        """Parse urls with bounded concurrency; one outcome per URL, in input order."""

        def parse_one(url: str) -> ParseOutcome:
            try:
                return ParseOutcome(url=url, content=self.parse(url, options))
            except ParsingError as e:
                return ParseOutcome(url=url, error=e.message)

        if not urls:
            return []
        with ThreadPoolExecutor(max_workers=max(1, max_concurrent)) as executor:
            return list(executor.map(parse_one, urls))
