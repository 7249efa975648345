"""
Contactmine identifier - model-based candidate contact identification.

Key design:
- Prompt is bounded: ~4000 chars of body text plus bio and social sub-sections
- Model output is validated into RawCandidate at the boundary
- Fail-soft at field level (bad email/title dropped), fail-closed at contact level
- No re-sorting here; the model's order is preserved
"""

import json
import re
import secrets
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import AICallFailedError, AIParseFailedError
from .llm import RetryPolicy, TextCompletionService, call_with_timeout
from .models import ContactInfo, ExtractedContact, ParsedContent, SocialProfile
from .scoring import JOURNALIST_KEYWORDS, is_professional_email, is_professional_title, is_realistic_name
from .social import PLATFORMS_BY_NAME

MAX_PROMPT_CONTENT = 4000

BIO_INDICATORS = (
    "about the author",
    "about",
    "bio",
    "profile",
    "background",
    "experience",
    "education",
    "contact",
    "reach out",
    "follow",
    "connect",
)

CONTACT_INDICATORS = ("@", "email", "phone", "twitter", "linkedin", "instagram", "facebook")

SOCIAL_SENTENCE_PATTERNS = (
    re.compile(r"twitter\.com/\w+", re.I),
    re.compile(r"linkedin\.com/in/\w+", re.I),
    re.compile(r"instagram\.com/\w+", re.I),
    re.compile(r"facebook\.com/\w+", re.I),
    re.compile(r"@\w+"),
)

JSON_ARRAY_REGEX = re.compile(r"\[[\s\S]*\]")

# Sentinel values that should be treated as None/empty
SENTINEL_VALUES = {
    "not provided",
    "n/a",
    "none",
    "unknown",
    "not available",
    "not specified",
    "-",
    "null",
    "na",
}

EXTRACTION_PROMPT = """Identify the journalists, editors, writers and subject-matter experts in this web content.

For every person you find, return an object with:
- name: full name
- title: job title or role, if stated
- bio: short biography, if stated
- email: email address, ONLY if it appears in the text
- socialProfiles: list of {{"platform": ..., "handle": ..., "url": ...}}
- confidence: 0.0-1.0, how sure you are this is a real, identifiable person
- reasoning: one sentence on why

Rules:
1. Only extract information EXPLICITLY stated in the text
2. Do NOT guess or construct email addresses
3. Skip organisations, brands and anonymous bylines
4. Return ONLY a JSON array (use [] when nobody qualifies)

{content}
"""


def _clean_value(value: Any) -> str | None:
    """Clean a string value, converting sentinel strings to None."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or value.lower() in SENTINEL_VALUES:
        return None
    return value


# =============================================================================
# BOUNDARY SCHEMA (model output)
# =============================================================================


class RawSocialProfile(BaseModel):
    """A social profile as the model reported it."""

    model_config = ConfigDict(extra="ignore")

    platform: str = Field(..., min_length=1)
    handle: str = Field(..., min_length=1)
    url: str | None = None
    verified: bool = False

    @field_validator("platform", mode="before")
    @classmethod
    def _lower_platform(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("handle", mode="before")
    @classmethod
    def _strip_at(cls, v: Any) -> Any:
        return v.strip().lstrip("@") if isinstance(v, str) else v


class RawCandidate(BaseModel):
    """
    One candidate as returned by the model.

    Field validators coerce malformed values to None instead of failing the
    whole candidate.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str | None = None
    title: str | None = None
    bio: str | None = None
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    social_profiles: list[RawSocialProfile] = Field(default_factory=list, alias="socialProfiles")
    confidence: float | None = None
    reasoning: str | None = None

    @field_validator("name", "title", "bio", "phone", "website", "reasoning", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str | None:
        return _clean_value(v)

    @field_validator("email", mode="before")
    @classmethod
    def _email(cls, v: Any) -> str | None:
        value = _clean_value(v)
        if value is None:
            return None
        value = value.removeprefix("mailto:").lower()
        if not re.fullmatch(r"[^\s@]+@[^\s@]+\.[^\s@]+", value):
            return None
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> float | None:
        if isinstance(v, bool):
            return None
        if isinstance(v, int | float):
            return float(v)
        if isinstance(v, str):
            try:
                return float(v)
            except ValueError:
                return None
        return None

    @field_validator("social_profiles", mode="before")
    @classmethod
    def _profiles(cls, v: Any) -> list[Any]:
        if not isinstance(v, list):
            return []
        # Drop entries that fail the shape check; keep the rest
        valid = []
        for item in v:
            try:
                valid.append(RawSocialProfile.model_validate(item))
            except ValidationError:
                continue
        return valid


@dataclass
class IdentifierOptions:
    """Options for one identification call."""

    max_contacts: int = 10
    include_bio: bool = True
    include_social_profiles: bool = True
    strict_validation: bool = False
    min_confidence: float = 0.3


@dataclass
class ExtractionContext:
    """Ids stamped onto every contact produced for one source."""

    extraction_id: str
    search_id: str


def generate_contact_id() -> str:
    return f"ai_contact_{int(time.time() * 1000)}_{secrets.token_hex(8)}"


# =============================================================================
# PROMPT BUILDING (pure)
# =============================================================================


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in re.split(r"[.!?]+", text) if s.strip()]


def extract_bio_sections(text: str) -> list[str]:
    """Sentences with both a bio keyword and a contact keyword."""
    sections = []
    for sentence in split_sentences(text):
        lower = sentence.lower()
        if any(b in lower for b in BIO_INDICATORS) and any(c in lower for c in CONTACT_INDICATORS):
            sections.append(sentence)
    return sections


def extract_social_sections(text: str) -> list[str]:
    return [
        sentence
        for sentence in split_sentences(text)
        if any(p.search(sentence) for p in SOCIAL_SENTENCE_PATTERNS)
    ]


def build_prompt(content: ParsedContent, options: IdentifierOptions) -> str:
    parts = []
    if content.title:
        parts.append(f"Title: {content.title}")
    if content.author:
        parts.append(f"Author: {content.author}")
    if content.published_at:
        parts.append(f"Published: {content.published_at.date().isoformat()}")
    parts.append(f"URL: {content.url}")

    body = content.content
    if len(body) > MAX_PROMPT_CONTENT:
        body = body[:MAX_PROMPT_CONTENT] + "..."
    parts.append(f"\nContent:\n{body}")

    if options.include_bio:
        bios = extract_bio_sections(content.content)
        if bios:
            parts.append("\nBio Sections:\n" + "\n".join(f"- {b}" for b in bios[:10]))
    if options.include_social_profiles:
        mentions = extract_social_sections(content.content)
        if mentions:
            parts.append("\nSocial Media Mentions:\n" + "\n".join(f"- {m}" for m in mentions[:10]))

    return EXTRACTION_PROMPT.format(content="\n".join(parts))


def parse_model_response(text: str) -> list[RawCandidate]:
    """First JSON array in the response -> validated candidates."""
    match = JSON_ARRAY_REGEX.search(text or "")
    if not match:
        raise AIParseFailedError("No JSON array found in model response")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise AIParseFailedError(f"Model response is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise AIParseFailedError("Model response is not a JSON array")

    candidates = []
    for item in data:
        if not isinstance(item, dict):
            continue
        candidates.append(RawCandidate.model_validate(item))
    return candidates


# =============================================================================
# SCORING OF RAW CANDIDATES
# =============================================================================


def candidate_relevance(contact: ExtractedContact) -> float:
    score = 0.5
    if contact.email:
        score += 0.2
    if contact.title:
        score += 0.15
    if contact.bio:
        score += 0.1
    if contact.social_profiles:
        score += 0.15
    text = " ".join(filter(None, [contact.name, contact.title, contact.bio])).lower()
    if any(k in text for k in JOURNALIST_KEYWORDS):
        score += 0.1
    return round(min(score, 1.0), 2)


def candidate_quality(contact: ExtractedContact) -> float:
    score = 0.5
    if len(contact.name.split()) >= 2:
        score += 0.2
    if contact.email and is_professional_email(contact.email):
        score += 0.15
    if contact.title and is_professional_title(contact.title):
        score += 0.1
    if contact.bio and len(contact.bio) > 50:
        score += 0.1
    if any(p.verified for p in contact.social_profiles):
        score += 0.15
    return round(min(score, 1.0), 2)


def _to_social_profile(raw: RawSocialProfile) -> SocialProfile:
    platform = PLATFORMS_BY_NAME.get(raw.platform)
    url = raw.url or (platform.profile_url(raw.handle) if platform else "")
    return SocialProfile(platform=raw.platform, handle=raw.handle, url=url, verified=raw.verified)


def candidate_to_contact(
    raw: RawCandidate, content: ParsedContent, context: ExtractionContext
) -> ExtractedContact:
    profiles = [_to_social_profile(p) for p in raw.social_profiles]
    confidence = raw.confidence if raw.confidence is not None else 0.5
    contact = ExtractedContact(
        id=generate_contact_id(),
        extraction_id=context.extraction_id,
        search_id=context.search_id,
        source_url=content.url,
        name=raw.name or "Unknown",
        title=raw.title,
        bio=raw.bio,
        email=raw.email,
        confidence_score=round(max(0.0, min(confidence, 1.0)), 2),
        extraction_method="AI_BASED",
        social_profiles=profiles,
        contact_info=ContactInfo(
            phone=raw.phone,
            website=raw.website,
            linkedin=next((p.url for p in profiles if p.platform == "linkedin"), None),
            twitter=next((p.url for p in profiles if p.platform == "twitter"), None),
        ),
    )
    contact.relevance_score = candidate_relevance(contact)
    contact.quality_score = candidate_quality(contact)
    contact.metadata["ai_reasoning"] = raw.reasoning
    contact.metadata["confidence_factors"] = {
        "name": 0.9 if raw.name else 0.0,
        "email": 0.8 if contact.email else 0.0,
        "title": 0.7 if contact.title else 0.0,
        "bio": 0.6 if contact.bio else 0.0,
        "social": 0.7 if profiles else 0.0,
        "overall": contact.confidence_score,
    }
    contact.log_step("ai_identification")
    return contact


# =============================================================================
# IDENTIFIER
# =============================================================================


class ContactIdentifier:
    """Calls the text service with retry/timeout and turns output into contacts.

    A timed-out call keeps its worker thread until the service returns, so the
    pool holds max_concurrent * max_attempts workers. Services should still
    enforce their own request timeout, as OpenAITextService does.
    """

    def __init__(
        self,
        service: TextCompletionService,
        retry_policy: RetryPolicy | None = None,
        timeout: float = 30.0,
        sleep: Callable[[float], None] | None = None,
        max_concurrent: int = 4,
    ):
        self.service = service
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self._sleep = sleep
        workers = max(1, max_concurrent) * max(1, self.retry_policy.max_attempts)
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="model-call")

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _complete(self, prompt: str, timeout: float) -> str:
        def attempt() -> str:
            return call_with_timeout(self._executor, lambda: self.service.complete(prompt), timeout)

        try:
            return self.retry_policy.call(attempt, sleep=self._sleep)
        except Exception as e:
            raise AICallFailedError(
                f"Model call failed after {self.retry_policy.max_attempts} attempts: {e}",
                details={"attempts": self.retry_policy.max_attempts},
            ) from e

    def extract_contacts(
        self,
        content: ParsedContent,
        context: ExtractionContext,
        options: IdentifierOptions | None = None,
        timeout: float | None = None,
    ) -> list[ExtractedContact]:
        options = options or IdentifierOptions()
        prompt = build_prompt(content, options)
        response = self._complete(prompt, timeout or self.timeout)
        candidates = parse_model_response(response)

        contacts = [candidate_to_contact(raw, content, context) for raw in candidates]
        contacts = self.validate_contacts(contacts, options)
        return contacts[: options.max_contacts]

    @staticmethod
    def validate_contacts(
        contacts: list[ExtractedContact], options: IdentifierOptions
    ) -> list[ExtractedContact]:
        """Drop unnamed, low-confidence and (in strict mode) unverifiable candidates."""
        valid = []
        for contact in contacts:
            if not contact.name.strip():
                continue
            if contact.confidence_score < options.min_confidence:
                continue
            if options.strict_validation:
                if not contact.email and not contact.title:
                    continue
                if not is_realistic_name(contact.name):
                    continue
            valid.append(contact)
        return valid
