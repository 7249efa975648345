"""Pytest configuration and fixtures."""

from collections.abc import Callable, Iterator
from datetime import UTC, datetime

import httpx
import pytest

from contactmine.cache import CacheConfig, ExtractionCache
from contactmine.email_validator import EmailValidator
from contactmine.llm import MockTextService, RetryPolicy
from contactmine.models import (
    ContentMetadata,
    ExtractedContact,
    ExtractionOptions,
    ExtractionRequest,
    ParsedContent,
    SocialProfile,
    Source,
)
from contactmine.parser import ContentParser, ParserConfig
from contactmine.pipeline import ExtractionOrchestrator
from contactmine.store import InMemoryContactStore

ARTICLE_URL = "https://news.example.com/articles/city-budget"

ARTICLE_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <title>City Council Approves Budget Plan</title>
  <meta name="description" content="The council voted on the new budget plan.">
  <meta name="author" content="Jane Doe">
  <meta name="keywords" content="budget, council, city">
</head>
<body>
  <nav><a href="/">Home</a></nav>
  <article>
    <h1>City Council Approves Budget Plan</h1>
    <p>By Jane Doe, Tech Reporter</p>
    <p>The city council approved the budget plan on Tuesday after a long debate
    about transit funding, school repairs and the cost of new street lighting in
    the downtown district. Members of the council said the plan was the result of
    months of public hearings and careful review of the city finances.</p>
    <p>Residents who spoke at the meeting asked the council to keep money for
    libraries and parks. The mayor said the approved plan keeps both open and adds
    two new bus routes that will start running in the spring.</p>
    <p>Jane Doe covers technology and city government. Contact her at
    jane.doe@outlet.com with tips about the budget.</p>
  </article>
  <footer>Copyright</footer>
</body>
</html>
"""

JANE_DOE_RESPONSE = (
    '[{"name": "Jane Doe", "title": "Tech Reporter", '
    '"email": "jane.doe@outlet.com", "confidence": 0.8}]'
)


def html_transport(pages: dict[str, str]) -> httpx.MockTransport:
    """Serve the given url -> html pages; anything else is a 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = pages.get(str(request.url))
        if body is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, text=body, headers={"content-type": "text/html; charset=utf-8"})

    return httpx.MockTransport(handler)


@pytest.fixture
def sample_content() -> ParsedContent:
    """Create a sample parsed article."""
    return ParsedContent(
        url=ARTICLE_URL,
        title="City Council Approves Budget Plan",
        author="Jane Doe",
        content=(
            "The city council approved the budget plan on Tuesday. "
            "Jane Doe covers technology for the paper. Contact her at jane.doe@outlet.com. "
            "Follow her on Twitter @janedoe for updates."
        ),
        language="en",
        metadata=ContentMetadata(domain="news.example.com", word_count=28, reading_time=1),
    )


@pytest.fixture
def make_contact() -> Callable[..., ExtractedContact]:
    """Factory for contacts with sensible defaults."""
    counter = {"n": 0}

    def factory(**overrides: object) -> ExtractedContact:
        counter["n"] += 1
        fields: dict[str, object] = {
            "id": f"contact_{counter['n']}",
            "extraction_id": "ext_1",
            "search_id": "search_1",
            "source_url": ARTICLE_URL,
            "name": "Jane Doe",
            "created_at": datetime(2024, 1, 1, tzinfo=UTC),
        }
        fields.update(overrides)
        return ExtractedContact(**fields)  # type: ignore[arg-type]

    return factory


@pytest.fixture
def sample_contact(make_contact: Callable[..., ExtractedContact]) -> ExtractedContact:
    """Create a sample, fully filled contact."""
    return make_contact(
        name="Jane Doe",
        title="Senior Technology Reporter",
        email="jane.doe@nytimes.com",
        bio="Jane Doe is an award-winning reporter who covers technology for the New York Times.",
        social_profiles=[
            SocialProfile(platform="twitter", handle="janedoe", url="https://twitter.com/janedoe")
        ],
    )


@pytest.fixture
def sample_request() -> ExtractionRequest:
    """Create a one-source request with a permissive threshold."""
    return ExtractionRequest(
        search_id="search_1",
        user_id="user_1",
        sources=(Source(url=ARTICLE_URL),),
        options=ExtractionOptions(confidence_threshold=0.3),
    )


@pytest.fixture
def make_parser() -> Iterator[Callable[..., ContentParser]]:
    """Factory for parsers backed by an in-memory HTTP transport."""
    parsers: list[ContentParser] = []

    def factory(pages: dict[str, str] | None = None) -> ContentParser:
        parser = ContentParser(
            ParserConfig(
                transport=html_transport(pages if pages is not None else {ARTICLE_URL: ARTICLE_HTML}),
                retry_backoff=0,
            )
        )
        parsers.append(parser)
        return parser

    yield factory
    for parser in parsers:
        parser.close()


@pytest.fixture
def make_orchestrator(
    make_parser: Callable[..., ContentParser],
) -> Iterator[Callable[..., ExtractionOrchestrator]]:
    """Factory for quiet orchestrators with no network and no retry delay."""
    created: list[ExtractionOrchestrator] = []

    def factory(
        service: MockTextService | None = None,
        pages: dict[str, str] | None = None,
        **kwargs: object,
    ) -> ExtractionOrchestrator:
        kwargs.setdefault("store", InMemoryContactStore())
        kwargs.setdefault("email_validator", EmailValidator())
        kwargs.setdefault("retry_policy", RetryPolicy(base_delay=0))
        orchestrator = ExtractionOrchestrator(
            service or MockTextService(JANE_DOE_RESPONSE),
            parser=make_parser(pages),
            quiet=True,
            **kwargs,  # type: ignore[arg-type]
        )
        created.append(orchestrator)
        return orchestrator

    yield factory
    for orchestrator in created:
        orchestrator.identifier.close()


@pytest.fixture
def cache() -> Iterator[ExtractionCache]:
    """Create a cache without the background sweep."""
    extraction_cache = ExtractionCache(CacheConfig(auto_cleanup=False))
    yield extraction_cache
    extraction_cache.destroy()
