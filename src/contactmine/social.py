"""
Contactmine social detector - find, validate and enrich social handles in free text.

Key design:
- Platforms are DATA: one PlatformDescriptor per network, no per-platform branching
- Detection is pure and deterministic; dedupe by platform:handle
- Enrichment (followers, verification) sits behind ProfileEnricher so a live
  lookup can replace the heuristic without touching detection
"""

import hashlib
import math
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

from .models import SocialProfile

# =============================================================================
# PLATFORM TABLE
# =============================================================================


def _linkedin_url(handle: str) -> str:
    """Person handles look like names; handles with dashes or digits are pages."""
    if "-" not in handle and not any(c.isdigit() for c in handle):
        return f"https://linkedin.com/in/{handle}"
    return f"https://linkedin.com/company/{handle}"


def _youtube_url(handle: str) -> str:
    if handle.startswith("UC") and len(handle) == 24:
        return f"https://youtube.com/channel/{handle}"
    return f"https://youtube.com/c/{handle}"


@dataclass(frozen=True)
class PlatformDescriptor:
    """How to find, check and link one social network."""

    name: str
    patterns: tuple[re.Pattern[str], ...]
    handle_pattern: re.Pattern[str]
    max_length: int
    url_builder: Callable[[str], str]
    url_markers: tuple[str, ...]
    reserved: frozenset[str] = frozenset()

    def profile_url(self, handle: str) -> str:
        return self.url_builder(handle)


_URL_PREFIX = r"(?:https?://)?(?:www\.|m\.|mobile\.)?"

PLATFORMS: tuple[PlatformDescriptor, ...] = (
    PlatformDescriptor(
        name="twitter",
        patterns=(
            re.compile(r"(?<![\w.])" + _URL_PREFIX + r"(?:twitter|x)\.com/([A-Za-z0-9_]{1,15})\b", re.I),
            # Bare @handle; not part of an email address or a URL path
            re.compile(r"(?<![\w@./])@([A-Za-z0-9_]{1,15})(?=\s|$|[.,;:!?)])"),
        ),
        handle_pattern=re.compile(r"^[a-zA-Z0-9_]{1,15}$"),
        max_length=15,
        url_builder=lambda h: f"https://twitter.com/{h}",
        url_markers=("twitter.com/", "x.com/"),
        reserved=frozenset({"intent", "share", "home", "search", "hashtag", "i", "login", "signup"}),
    ),
    PlatformDescriptor(
        name="linkedin",
        patterns=(
            re.compile(_URL_PREFIX + r"linkedin\.com/(?:in|company)/([A-Za-z0-9-]{3,100})", re.I),
        ),
        handle_pattern=re.compile(r"^[a-zA-Z0-9-]{3,100}$"),
        max_length=100,
        url_builder=_linkedin_url,
        url_markers=("linkedin.com/in/", "linkedin.com/company/"),
    ),
    PlatformDescriptor(
        name="instagram",
        patterns=(
            re.compile(_URL_PREFIX + r"(?:instagram\.com|instagr\.am)/([A-Za-z0-9_.]{1,30})", re.I),
        ),
        handle_pattern=re.compile(r"^[a-zA-Z0-9_.]{1,30}$"),
        max_length=30,
        url_builder=lambda h: f"https://instagram.com/{h}",
        url_markers=("instagram.com/", "instagr.am/"),
        reserved=frozenset({"p", "explore", "accounts", "reel", "stories"}),
    ),
    PlatformDescriptor(
        name="facebook",
        patterns=(
            re.compile(_URL_PREFIX + r"(?:facebook\.com|fb\.com)/([A-Za-z0-9.]{1,50})", re.I),
        ),
        handle_pattern=re.compile(r"^[a-zA-Z0-9.]{1,50}$"),
        max_length=50,
        url_builder=lambda h: f"https://facebook.com/{h}",
        url_markers=("facebook.com/", "fb.com/"),
        reserved=frozenset({"sharer", "share", "pages", "groups", "events", "login"}),
    ),
    PlatformDescriptor(
        name="youtube",
        patterns=(
            re.compile(
                _URL_PREFIX + r"youtube\.com/(?:channel|c|user)/([A-Za-z0-9_-]{1,100})", re.I
            ),
            re.compile(_URL_PREFIX + r"youtu\.be/([A-Za-z0-9_-]{1,100})", re.I),
        ),
        handle_pattern=re.compile(r"^[a-zA-Z0-9_-]{1,100}$"),
        max_length=100,
        url_builder=_youtube_url,
        url_markers=("youtube.com/", "youtu.be/"),
    ),
)

PLATFORMS_BY_NAME: dict[str, PlatformDescriptor] = {p.name: p for p in PLATFORMS}


# =============================================================================
# DETECTION
# =============================================================================


def detect_social_profiles(text: str) -> list[SocialProfile]:
    """
    Find social handles in free text.

    Returns one profile per platform:handle (case-insensitive), in order of
    first appearance.
    """
    if not text:
        return []

    found: list[tuple[int, SocialProfile]] = []
    seen: set[str] = set()

    for platform in PLATFORMS:
        for pattern in platform.patterns:
            for match in pattern.finditer(text):
                handle = match.group(1).rstrip(".")
                if not handle or handle.lower() in platform.reserved:
                    continue
                key = f"{platform.name}:{handle.lower()}"
                if key in seen:
                    continue
                seen.add(key)
                found.append(
                    (
                        match.start(),
                        SocialProfile(
                            platform=platform.name,
                            handle=handle,
                            url=platform.profile_url(handle),
                        ),
                    )
                )

    found.sort(key=lambda item: item[0])
    return [profile for _, profile in found]


def detect_from_html(html: str) -> list[SocialProfile]:
    """Detect profiles from anchor hrefs and visible text of an HTML page."""
    if not html:
        return []
    soup = BeautifulSoup(html, "lxml")
    hrefs = [str(a.get("href", "")) for a in soup.find_all("a", href=True)]
    text = soup.get_text(separator=" ", strip=True)
    return detect_social_profiles("\n".join(hrefs) + "\n" + text)


@dataclass
class SocialMention:
    """A handle or profile link found in text, with surrounding context."""

    platform: str
    handle: str
    context: str
    position: int


def extract_social_mentions(text: str, context_chars: int = 50) -> list[SocialMention]:
    """Every match (not deduped) with +/- context_chars of surrounding text."""
    mentions: list[SocialMention] = []
    if not text:
        return mentions
    for platform in PLATFORMS:
        for pattern in platform.patterns:
            for match in pattern.finditer(text):
                handle = match.group(1)
                if handle.lower() in platform.reserved:
                    continue
                start = max(0, match.start() - context_chars)
                end = min(len(text), match.end() + context_chars)
                mentions.append(
                    SocialMention(
                        platform=platform.name,
                        handle=handle,
                        context=text[start:end].strip(),
                        position=match.start(),
                    )
                )
    mentions.sort(key=lambda m: m.position)
    return mentions


def group_profiles_by_platform(profiles: list[SocialProfile]) -> dict[str, list[SocialProfile]]:
    """Bucket profiles by platform name."""
    grouped: dict[str, list[SocialProfile]] = {}
    for profile in profiles:
        grouped.setdefault(profile.platform, []).append(profile)
    return grouped


def get_platform_stats(profiles: list[SocialProfile]) -> dict[str, dict[str, float]]:
    """Per-platform count, verified count and average followers."""
    stats: dict[str, dict[str, float]] = {}
    for platform, items in group_profiles_by_platform(profiles).items():
        followers = [p.followers for p in items if p.followers is not None]
        stats[platform] = {
            "count": len(items),
            "verified": sum(1 for p in items if p.verified),
            "average_followers": (sum(followers) / len(followers)) if followers else 0.0,
        }
    return stats


# =============================================================================
# VALIDATION
# =============================================================================

MAJOR_INDICATORS = {
    "Handle too long",
    "Contains multiple numbers",
    "Contains spam-like pattern",
}

SPAM_AFFIX_REGEX = re.compile(r"^(test|spam|fake|bot|temp)|(test|spam|fake|bot|temp)$|_?[0-9]+$", re.I)


@dataclass
class ProfileValidation:
    """Verdict on a single social profile."""

    is_valid: bool
    indicators: list[str] = field(default_factory=list)
    activity_score: float = 0.0
    reasoning: list[str] = field(default_factory=list)


def find_spam_indicators(profile: SocialProfile) -> list[str]:
    """Pure check of a handle against the spam heuristics."""
    handle = profile.handle
    indicators: list[str] = []
    platform = PLATFORMS_BY_NAME.get(profile.platform.lower())

    if re.search(r"\d{3,}", handle):
        indicators.append("Contains multiple numbers")
    if re.search(r"(.)\1{2,}", handle):
        indicators.append("Contains repeated characters")
    if SPAM_AFFIX_REGEX.search(handle):
        indicators.append("Contains spam-like pattern")
    if len(handle) < 3:
        indicators.append("Handle too short")
    max_length = platform.max_length if platform else 30
    if len(handle) > min(max_length, 30):
        indicators.append("Handle too long")
    if platform and profile.url:
        url = profile.url.lower()
        if not any(marker in url for marker in platform.url_markers):
            indicators.append("Incorrect URL format")
    return indicators


def calculate_activity_score(profile: SocialProfile) -> float:
    """0.5 base, +0.3 verified, + log-scaled followers (max 0.5), +0.2 description."""
    score = 0.5
    if profile.verified:
        score += 0.3
    if profile.followers and profile.followers > 0:
        score += min(math.log10(profile.followers) / 10, 0.5)
    if profile.description:
        score += 0.2
    return min(score, 1.0)


def validate_profile(profile: SocialProfile) -> ProfileValidation:
    """Check handle format, spam indicators and compute an activity score."""
    platform = PLATFORMS_BY_NAME.get(profile.platform.lower())
    if platform is None:
        return ProfileValidation(is_valid=False, reasoning=[f"Unsupported platform: {profile.platform}"])

    if not platform.handle_pattern.match(profile.handle):
        return ProfileValidation(
            is_valid=False,
            indicators=["Invalid handle format"],
            reasoning=[f"Handle does not match {platform.name} format"],
        )
    if len(profile.handle) > platform.max_length:
        return ProfileValidation(
            is_valid=False,
            indicators=["Handle too long"],
            reasoning=[f"Handle exceeds {platform.max_length} characters"],
        )

    indicators = find_spam_indicators(profile)
    if len(indicators) >= 2 or any(i in MAJOR_INDICATORS for i in indicators):
        return ProfileValidation(
            is_valid=False,
            indicators=indicators,
            reasoning=[f"Spam indicators: {', '.join(indicators)}"],
        )

    reasoning = ["Handle format valid"]
    if indicators:
        reasoning.append(f"Minor indicator: {indicators[0]}")
    return ProfileValidation(
        is_valid=True,
        indicators=indicators,
        activity_score=calculate_activity_score(profile),
        reasoning=reasoning,
    )


# =============================================================================
# ENRICHMENT
# =============================================================================


@dataclass
class ProfileEnrichment:
    """Extra facts about a profile from a platform lookup."""

    verified: bool = False
    followers: int | None = None
    description: str | None = None


class ProfileEnricher(ABC):
    """Abstract enrichment capability."""

    @abstractmethod
    def enrich(self, profile: SocialProfile) -> ProfileEnrichment:
        """Return enrichment facts for a profile."""
        pass


class HeuristicEnricher(ProfileEnricher):
    """Offline estimates: stable per handle, no network."""

    def enrich(self, profile: SocialProfile) -> ProfileEnrichment:
        digest = hashlib.md5(f"{profile.platform}:{profile.handle.lower()}".encode()).hexdigest()
        followers = 100 + int(digest[:6], 16) % 9900
        verified = profile.platform == "twitter" and "verified" in profile.handle.lower()
        return ProfileEnrichment(verified=verified, followers=followers)


class SocialProfileDetector:
    """Detect, validate and enrich social profiles."""

    def __init__(self, enricher: ProfileEnricher | None = None):
        self.enricher = enricher or HeuristicEnricher()

    def detect_social_profiles(self, text: str) -> list[SocialProfile]:
        return detect_social_profiles(text)

    def detect_from_html(self, html: str) -> list[SocialProfile]:
        return detect_from_html(html)

    def validate_profile(self, profile: SocialProfile) -> ProfileValidation:
        return validate_profile(profile)

    def enrich_profile(self, profile: SocialProfile) -> SocialProfile:
        """Apply enrichment facts; keeps any values already on the profile."""
        facts = self.enricher.enrich(profile)
        return profile.model_copy(
            update={
                "verified": profile.verified or facts.verified,
                "followers": profile.followers if profile.followers is not None else facts.followers,
                "description": profile.description or facts.description,
            }
        )

    def detect_and_validate(self, text: str) -> list[SocialProfile]:
        """Detect profiles in text, enrich them and keep only valid ones."""
        valid = []
        for profile in self.detect_social_profiles(text):
            enriched = self.enrich_profile(profile)
            if self.validate_profile(enriched).is_valid:
                valid.append(enriched)
        return valid
