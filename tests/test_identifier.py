"""Tests for model-based contact identification."""

import json
import threading

import pytest
from conftest import ARTICLE_URL, JANE_DOE_RESPONSE

from contactmine.errors import AICallFailedError, AIParseFailedError
from contactmine.identifier import (
    ContactIdentifier,
    ExtractionContext,
    IdentifierOptions,
    RawCandidate,
    build_prompt,
    candidate_to_contact,
    parse_model_response,
)
from contactmine.llm import MockTextService, ModelTimeoutError, RetryPolicy, TextCompletionService
from contactmine.models import ParsedContent

CONTEXT = ExtractionContext(extraction_id="ext_1", search_id="search_1")


class BlockingService(TextCompletionService):
    """Service that never answers until released."""

    def __init__(self) -> None:
        self.release = threading.Event()
        self.calls = 0

    def complete(self, prompt: str) -> str:
        self.calls += 1
        self.release.wait(5)
        return "[]"


@pytest.fixture
def make_identifier():
    created: list[ContactIdentifier] = []

    def factory(service: TextCompletionService, **kwargs: object) -> ContactIdentifier:
        kwargs.setdefault("retry_policy", RetryPolicy(base_delay=0))
        identifier = ContactIdentifier(service, **kwargs)  # type: ignore[arg-type]
        created.append(identifier)
        return identifier

    yield factory
    for identifier in created:
        identifier.close()


class TestParseModelResponse:
    """Tests for parse_model_response and RawCandidate coercion."""

    def test_array_inside_prose(self) -> None:
        """Test the first JSON array is found inside surrounding text."""
        candidates = parse_model_response(f"Here you go:\n{JANE_DOE_RESPONSE}\nDone.")
        assert [c.name for c in candidates] == ["Jane Doe"]
        assert candidates[0].confidence == 0.8

    def test_no_array(self) -> None:
        """Test a response without an array is a parse failure."""
        with pytest.raises(AIParseFailedError):
            parse_model_response("Nobody here.")

    def test_invalid_json(self) -> None:
        """Test a malformed array is a parse failure."""
        with pytest.raises(AIParseFailedError):
            parse_model_response("[not json]")

    def test_non_object_items_skipped(self) -> None:
        """Test scalars inside the array are ignored."""
        assert len(parse_model_response('[1, "x", {"name": "Jane Doe"}]')) == 1

    def test_field_cleaning(self) -> None:
        """Test sentinels, mailto prefixes and string confidences are normalized."""
        raw = RawCandidate.model_validate(
            {
                "name": "  Jane Doe ",
                "title": "N/A",
                "bio": "Not provided",
                "email": "mailto:Jane.Doe@Outlet.com",
                "confidence": "0.7",
            }
        )
        assert raw.name == "Jane Doe"
        assert raw.title is None
        assert raw.bio is None
        assert raw.email == "jane.doe@outlet.com"
        assert raw.confidence == 0.7

    def test_bad_fields_do_not_fail_candidate(self) -> None:
        """Test malformed emails and confidences become None."""
        raw = RawCandidate.model_validate(
            {"name": "Jane Doe", "email": "not-an-email", "confidence": True}
        )
        assert raw.email is None
        assert raw.confidence is None

    def test_social_profiles_alias(self) -> None:
        """Test socialProfiles is read and invalid entries dropped."""
        raw = RawCandidate.model_validate(
            {
                "name": "Jane Doe",
                "socialProfiles": [
                    {"platform": "Twitter", "handle": "@janedoe"},
                    {"platform": "", "handle": "x"},
                ],
            }
        )
        assert [(p.platform, p.handle) for p in raw.social_profiles] == [("twitter", "janedoe")]


class TestBuildPrompt:
    """Tests for build_prompt."""

    def test_metadata_and_truncation(self) -> None:
        """Test header lines are present and long bodies are cut."""
        content = ParsedContent(
            url=ARTICLE_URL, title="Budget", author="Jane Doe", content="x" * 5000
        )
        prompt = build_prompt(content, IdentifierOptions())
        assert "Title: Budget" in prompt
        assert "Author: Jane Doe" in prompt
        assert f"URL: {ARTICLE_URL}" in prompt
        assert "x" * 4000 + "..." in prompt
        assert "x" * 4001 not in prompt

    def test_bio_and_social_sections(self) -> None:
        """Test bio and social sentences get their own sections."""
        content = ParsedContent(
            url=ARTICLE_URL,
            content="About the author: reach her by email or on Twitter @janedoe! The end",
        )
        prompt = build_prompt(content, IdentifierOptions())
        assert "Bio Sections:" in prompt
        assert "Social Media Mentions:" in prompt

        bare = build_prompt(
            content, IdentifierOptions(include_bio=False, include_social_profiles=False)
        )
        assert "Bio Sections:" not in bare
        assert "Social Media Mentions:" not in bare


class TestCandidateToContact:
    """Tests for candidate_to_contact."""

    def test_defaults(self) -> None:
        """Test missing name and confidence get placeholder values."""
        contact = candidate_to_contact(
            RawCandidate(), ParsedContent(url=ARTICLE_URL), CONTEXT
        )
        assert contact.name == "Unknown"
        assert contact.confidence_score == 0.5
        assert contact.extraction_method == "AI_BASED"
        assert contact.source_url == ARTICLE_URL
        assert contact.id.startswith("ai_contact_")
        assert contact.metadata["processing_steps"][0]["step"] == "ai_identification"

    def test_profiles_fill_contact_info(self) -> None:
        """Test profile URLs are built and copied into contact_info."""
        raw = RawCandidate.model_validate(
            {"name": "Jane Doe", "socialProfiles": [{"platform": "twitter", "handle": "janedoe"}]}
        )
        contact = candidate_to_contact(raw, ParsedContent(url=ARTICLE_URL), CONTEXT)
        assert contact.social_profiles[0].url == "https://twitter.com/janedoe"
        assert contact.contact_info.twitter == "https://twitter.com/janedoe"
        assert contact.contact_info.linkedin is None

    def test_confidence_clamped(self) -> None:
        """Test out-of-range confidences are clamped."""
        raw = RawCandidate(name="Jane Doe", confidence=3.0)
        contact = candidate_to_contact(raw, ParsedContent(url=ARTICLE_URL), CONTEXT)
        assert contact.confidence_score == 1.0


class TestContactIdentifier:
    """Tests for ContactIdentifier.extract_contacts."""

    def test_extracts_contacts(self, make_identifier, sample_content) -> None:
        """Test a good response becomes stamped contacts."""
        service = MockTextService(JANE_DOE_RESPONSE)
        contacts = make_identifier(service).extract_contacts(sample_content, CONTEXT)
        assert len(contacts) == 1
        assert contacts[0].name == "Jane Doe"
        assert contacts[0].email == "jane.doe@outlet.com"
        assert contacts[0].extraction_id == "ext_1"
        assert contacts[0].search_id == "search_1"
        assert "City Council Approves Budget Plan" in service.calls[0]

    def test_order_and_cap(self, make_identifier, sample_content) -> None:
        """Test the model's order is kept and the list is capped."""
        names = ["Jane Doe", "Carlos Mendez", "Priya Patel"]
        response = json.dumps([{"name": n, "confidence": 0.9} for n in names])
        contacts = make_identifier(MockTextService(response)).extract_contacts(
            sample_content, CONTEXT, IdentifierOptions(max_contacts=2)
        )
        assert [c.name for c in contacts] == names[:2]

    def test_low_confidence_dropped(self, make_identifier, sample_content) -> None:
        """Test candidates under min_confidence are removed."""
        response = json.dumps(
            [{"name": "Jane Doe", "confidence": 0.1}, {"name": "Carlos Mendez", "confidence": 0.6}]
        )
        contacts = make_identifier(MockTextService(response)).extract_contacts(
            sample_content, CONTEXT
        )
        assert [c.name for c in contacts] == ["Carlos Mendez"]

    def test_strict_validation(self, make_identifier, sample_content) -> None:
        """Test strict mode needs email or title and a realistic name."""
        response = json.dumps(
            [
                {"name": "Jane Doe", "confidence": 0.9},
                {"name": "JANE DOE", "title": "Reporter", "confidence": 0.9},
                {"name": "Carlos Mendez", "title": "Editor", "confidence": 0.9},
            ]
        )
        contacts = make_identifier(MockTextService(response)).extract_contacts(
            sample_content, CONTEXT, IdentifierOptions(strict_validation=True)
        )
        assert [c.name for c in contacts] == ["Carlos Mendez"]

    def test_call_failure_after_retries(self, make_identifier, sample_content) -> None:
        """Test exhausted retries raise AICallFailedError."""
        service = MockTextService(error=RuntimeError("quota exceeded"))
        with pytest.raises(AICallFailedError) as exc_info:
            make_identifier(service).extract_contacts(sample_content, CONTEXT)
        assert service.call_count == 3
        assert exc_info.value.details["attempts"] == 3

    def test_parse_failure_not_retried(self, make_identifier, sample_content) -> None:
        """Test an unparseable answer fails without another model call."""
        service = MockTextService("I could not find anyone.")
        with pytest.raises(AIParseFailedError):
            make_identifier(service).extract_contacts(sample_content, CONTEXT)
        assert service.call_count == 1

    def test_timeout(self, make_identifier, sample_content) -> None:
        """Test a hung model call surfaces as a call failure caused by a timeout."""
        service = BlockingService()
        identifier = make_identifier(
            service, retry_policy=RetryPolicy(max_attempts=1, base_delay=0)
        )
        try:
            with pytest.raises(AICallFailedError) as exc_info:
                identifier.extract_contacts(sample_content, CONTEXT, timeout=0.05)
            assert isinstance(exc_info.value.__cause__, ModelTimeoutError)
        finally:
            service.release.set()

    def test_hung_calls_do_not_starve_retries(self, make_identifier, sample_content) -> None:
        """Test every retry reaches the service while earlier calls are still hung."""
        service = BlockingService()
        identifier = make_identifier(
            service, retry_policy=RetryPolicy(max_attempts=3, base_delay=0), max_concurrent=2
        )
        try:
            for _ in range(2):
                with pytest.raises(AICallFailedError):
                    identifier.extract_contacts(sample_content, CONTEXT, timeout=0.05)
            assert service.calls == 6
        finally:
            service.release.set()
