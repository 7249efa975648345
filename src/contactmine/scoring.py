"""
Contactmine scoring - three independent scores per contact.

- confidence: is this really an identifiable person, given the evidence?
- quality: how complete and credible is the record?
- relevance: does it match what the search was looking for?

Each returns (score, contributions) like the lead scorer it grew from, so the
breakdown can be stored in contact metadata. Scores are always in [0, 1].
"""

import re
from dataclasses import dataclass, field

from .models import ExtractedContact, ParsedContent, QualityFactors, VerificationStatus

CONFIDENCE_WEIGHTS = {
    "name": 0.25,
    "email": 0.20,
    "title": 0.15,
    "bio": 0.15,
    "social": 0.15,
    "source_authority": 0.10,
}

QUALITY_WEIGHTS = {
    "freshness": 0.20,
    "credibility": 0.25,
    "consistency": 0.20,
    "completeness": 0.20,
    "verification": 0.15,
}

JOURNALIST_KEYWORDS = (
    "journalist",
    "reporter",
    "editor",
    "author",
    "writer",
    "correspondent",
    "columnist",
    "contributor",
    "producer",
)

PROFESSIONAL_TITLE_KEYWORDS = (
    "editor",
    "reporter",
    "journalist",
    "author",
    "writer",
    "correspondent",
    "analyst",
    "expert",
    "consultant",
    "researcher",
    "specialist",
    "senior",
    "lead",
    "chief",
    "director",
    "manager",
    "head",
)

MEDIA_TITLE_TERMS = ("news", "media", "press", "broadcast", "digital", "magazine", "desk", "bureau")
SENIORITY_TERMS = ("senior", "lead", "chief", "head", "principal", "executive", "managing")
BEAT_TERMS = (
    "tech",
    "technology",
    "politics",
    "business",
    "health",
    "science",
    "sports",
    "finance",
    "climate",
    "culture",
    "entertainment",
    "education",
)

MEDIA_OUTLET_REGEX = re.compile(
    r"\b(new york times|washington post|wall street journal|cnn|bbc|reuters|"
    r"associated press|npr|pbs)\b",
    re.I,
)

GENERIC_EMAIL_REGEX = re.compile(
    r"^(info|contact|hello|news|editor|support|admin|team|sales|marketing)@", re.I
)

PERSONAL_EMAIL_PATTERNS = (
    re.compile(r"^[a-z]+\.[a-z]+@", re.I),
    re.compile(r"^[a-z]+[a-z0-9]*@[a-z]+\.[a-z]{2,}$", re.I),
    re.compile(r"^[a-z]\.[a-z]+@[a-z]+\.[a-z]{2,}$", re.I),
)

CREDIBLE_EMAIL_DOMAINS = (
    re.compile(r"(^|\.)nytimes\.com$"),
    re.compile(r"(^|\.)washingtonpost\.com$"),
    re.compile(r"(^|\.)wsj\.com$"),
    re.compile(r"(^|\.)cnn\.com$"),
    re.compile(r"(^|\.)bbc\.(co\.uk|com)$"),
    re.compile(r"(^|\.)reuters\.com$"),
    re.compile(r"(^|\.)ap\.org$"),
    re.compile(r"(^|\.)npr\.org$"),
    re.compile(r"(^|\.)pbs\.org$"),
    re.compile(r"\.edu$"),
    re.compile(r"\.ac\.[a-z]{2}$"),
)

SUSPICIOUS_EMAIL_DOMAIN_REGEX = re.compile(
    r"10minutemail|tempmail|mailinator|guerrillamail|yopmail|throwaway|spam|fake|test"
)

VERIFICATION_SCORES: dict[str, float] = {
    "CONFIRMED": 1.0,
    "PENDING": 0.7,
    "MANUAL_REVIEW": 0.4,
    "REJECTED": 0.1,
}


# =============================================================================
# NAME / EMAIL / TITLE HEURISTICS (pure)
# =============================================================================


def is_realistic_name(name: str) -> bool:
    """Reject digits, all caps, all lowercase, test names, bare initials, odd lengths."""
    name = (name or "").strip()
    if not 2 <= len(name) <= 29:
        return False
    if re.search(r"\d", name):
        return False
    letters = re.sub(r"[^A-Za-z]", "", name)
    if letters and (letters.isupper() and len(letters) > 1):
        return False
    if letters and letters.islower():
        return False
    if re.search(r"test|example|sample|demo", name, re.I):
        return False
    if re.fullmatch(r"[A-Za-z]\.?", name):
        return False
    return True


def has_title_contamination(name: str) -> bool:
    """Honorifics, suffixes or job titles glued onto the name."""
    return bool(
        re.match(r"^(mr|mrs|ms|dr|prof|sir|madam)\.?\s+", name, re.I)
        or re.search(r"\s(jr|sr|ii|iii|iv)\.?$", name, re.I)
        or re.search(r"(editor|reporter|journalist|author)$", name, re.I)
    )


def has_suspicious_name_pattern(name: str) -> bool:
    return bool(
        re.match(r"^[a-z]{20,}$", name)
        or re.search(r"([a-z])\1{3,}", name, re.I)
        or re.match(r"^[\W_]+$", name)
        or re.match(r"^(test|dummy|fake|sample|example)", name, re.I)
    )


def is_generic_email(email: str) -> bool:
    return bool(GENERIC_EMAIL_REGEX.match(email.lower()))


def is_professional_email(email: str) -> bool:
    """Personal-looking mailbox that is not a role address."""
    email = email.lower()
    return any(p.match(email) for p in PERSONAL_EMAIL_PATTERNS) and not is_generic_email(email)


def is_professional_title(title: str) -> bool:
    title = title.lower()
    return any(k in title for k in PROFESSIONAL_TITLE_KEYWORDS)


def is_credible_domain(domain: str) -> bool:
    return any(p.search(domain.lower()) for p in CREDIBLE_EMAIL_DOMAINS)


# =============================================================================
# SCORE RESULT
# =============================================================================


@dataclass
class ScoreResult:
    """A score plus how it was reached."""

    score: float
    factors: dict[str, float] = field(default_factory=dict)
    reasoning: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def as_metadata(self) -> dict[str, object]:
        return {
            "score": self.score,
            "factors": self.factors,
            "reasoning": self.reasoning,
        }


def _clamp(value: float) -> float:
    return max(0.0, min(value, 1.0))


class ConfidenceScorer:
    """Computes confidence, quality and relevance for one contact."""

    def __init__(
        self,
        confidence_weights: dict[str, float] | None = None,
        quality_weights: dict[str, float] | None = None,
    ):
        self.confidence_weights = confidence_weights or dict(CONFIDENCE_WEIGHTS)
        self.quality_weights = quality_weights or dict(QUALITY_WEIGHTS)

    # -------------------------------------------------------------------------
    # Confidence
    # -------------------------------------------------------------------------

    def calculate_confidence_score(
        self, contact: ExtractedContact, source_credibility: float = 0.5
    ) -> ScoreResult:
        """Weighted evidence that the contact is a real, identifiable person."""
        reasoning: list[str] = []
        recommendations: list[str] = []

        factors = {
            "name": self._name_confidence(contact.name, reasoning, recommendations),
            "email": self._email_confidence(contact.email, reasoning, recommendations),
            "title": self._title_confidence(contact.title, reasoning, recommendations),
            "bio": self._bio_confidence(contact.bio, reasoning, recommendations),
            "social": self._social_confidence(contact, reasoning, recommendations),
            "source_authority": _clamp(source_credibility),
        }
        if source_credibility >= 0.8:
            reasoning.append("Highly authoritative source")
        elif source_credibility < 0.6:
            reasoning.append("Source authority needs verification")

        total = sum(factors[k] * self.confidence_weights[k] for k in self.confidence_weights)
        score = round(_clamp(total), 2)
        if score >= 0.8:
            reasoning.append("High confidence contact")
        elif score >= 0.6:
            reasoning.append("Moderate confidence contact")
        else:
            reasoning.append("Low confidence contact")
        return ScoreResult(score, factors, reasoning, recommendations)

    def _name_confidence(self, name: str, reasoning: list[str], recommendations: list[str]) -> float:
        name = (name or "").strip()
        if not name or name == "Unknown":
            reasoning.append("No name provided")
            recommendations.append("Identify the contact's full name")
            return 0.0

        confidence = 0.0
        parts = name.split()
        if len(parts) >= 2:
            confidence += 0.4
            reasoning.append("Full name provided")
        else:
            confidence += 0.2
            recommendations.append("Find the contact's full name")
        if is_realistic_name(name):
            confidence += 0.3
        else:
            reasoning.append("Name looks unusual")
        if has_title_contamination(name):
            confidence -= 0.2
            recommendations.append("Strip titles from the name")
        if has_suspicious_name_pattern(name):
            confidence -= 0.3
            reasoning.append("Name has suspicious patterns")
        if 5 <= len(name) <= 30:
            confidence += 0.1
        return _clamp(confidence)

    def _email_confidence(
        self, email: str | None, reasoning: list[str], recommendations: list[str]
    ) -> float:
        if not email:
            reasoning.append("No email provided")
            recommendations.append("Find a direct email address")
            return 0.0

        confidence = 0.0
        if re.match(r"^[^\s@]+@[^\s@]+\.[^\s@]+$", email):
            confidence += 0.3
        else:
            reasoning.append("Email format invalid")
            return 0.0

        if is_professional_email(email):
            confidence += 0.4
            reasoning.append("Professional email format")
        elif is_generic_email(email):
            confidence += 0.1
            reasoning.append("Generic email address")
            recommendations.append("Find a personal email address")

        domain = email.split("@")[1].lower()
        if is_credible_domain(domain):
            confidence += 0.2
            reasoning.append("Credible email domain")
        elif SUSPICIOUS_EMAIL_DOMAIN_REGEX.search(domain):
            confidence -= 0.2
            reasoning.append("Suspicious email domain")

        local = email.split("@")[0].lower()
        personalized = re.match(r"^[a-z]+\.[a-z]+|^[a-z]+[0-9]|^[a-z]{3,}", local)
        if personalized and not is_generic_email(email):
            confidence += 0.1
        return _clamp(confidence)

    def _title_confidence(
        self, title: str | None, reasoning: list[str], recommendations: list[str]
    ) -> float:
        if not title:
            reasoning.append("No title provided")
            recommendations.append("Find the contact's job title")
            return 0.0

        title_lower = title.lower()
        confidence = 0.0
        if is_professional_title(title):
            confidence += 0.4
            reasoning.append("Professional title")
        if any(t in title_lower for t in MEDIA_TITLE_TERMS):
            confidence += 0.2
        if any(t in title_lower for t in SENIORITY_TERMS):
            confidence += 0.1
        if any(t in title_lower for t in BEAT_TERMS):
            confidence += 0.1
        if 10 <= len(title) <= 60:
            confidence += 0.1
        return _clamp(confidence)

    def _bio_confidence(
        self, bio: str | None, reasoning: list[str], recommendations: list[str]
    ) -> float:
        if not bio:
            reasoning.append("No bio provided")
            return 0.0

        bio_lower = bio.lower()
        confidence = 0.0
        if 50 <= len(bio) <= 300:
            confidence += 0.2
        elif len(bio) < 30:
            reasoning.append("Bio is very short")
            recommendations.append("Expand bio information")
        elif len(bio) > 500:
            reasoning.append("Bio is unusually long")

        indicators = ("award", "published", "education", "experience", "background")
        matched = sum(1 for i in indicators if i in bio_lower)
        if matched >= 2:
            confidence += 0.3
        elif matched == 1:
            confidence += 0.15

        if any(i in bio_lower for i in ("email", "twitter", "linkedin", "contact", "reach")):
            confidence += 0.1
        outlets = MEDIA_OUTLET_REGEX.findall(bio)
        if outlets:
            confidence += 0.2
            reasoning.append(f"Bio mentions media outlets: {', '.join(outlets)}")
        language = ("specializes", "covers", "reports", "writes", "focuses", "expertise")
        if sum(1 for t in language if t in bio_lower) >= 2:
            confidence += 0.1
        return _clamp(confidence)

    def _social_confidence(
        self, contact: ExtractedContact, reasoning: list[str], recommendations: list[str]
    ) -> float:
        profiles = contact.social_profiles
        if not profiles:
            recommendations.append("Add social media profiles if available")
            return 0.0

        confidence = 0.2 if len(profiles) >= 2 else 0.1
        credible = [
            p for p in profiles if p.platform.lower() in ("linkedin", "twitter", "instagram", "facebook")
        ]
        if len(credible) >= 2:
            confidence += 0.3
        elif credible:
            confidence += 0.15
        verified = sum(1 for p in profiles if p.verified)
        if verified:
            confidence += 0.2
            reasoning.append(f"Verified profiles: {verified}")
        followers = sum(p.followers or 0 for p in profiles)
        if followers > 10000:
            confidence += 0.1
        elif followers > 1000:
            confidence += 0.05
        if all(p.handle and p.url and p.description for p in profiles):
            confidence += 0.1
        return _clamp(confidence)

    # -------------------------------------------------------------------------
    # Quality
    # -------------------------------------------------------------------------

    def calculate_quality_score(
        self, contact: ExtractedContact, factors: QualityFactors | None = None
    ) -> ScoreResult:
        """Completeness and credibility of the record, independent of confidence."""
        factors = factors or QualityFactors()
        reasoning: list[str] = []
        recommendations: list[str] = []

        credibility = self._floor(factors.source_credibility, "Source credibility", reasoning)
        freshness = self._floor(factors.content_freshness, "Content freshness", reasoning)
        consistency = self._floor(factors.information_consistency, "Consistency", reasoning)
        completeness = contact_completeness(contact)
        if completeness < 0.6:
            reasoning.append("Contact information is incomplete")
            recommendations.append("Add missing contact details")
        verification = self._verification_score(contact.verification_status, reasoning)

        breakdown = {
            "freshness": freshness,
            "credibility": credibility,
            "consistency": consistency,
            "completeness": completeness,
            "verification": verification,
        }
        total = sum(breakdown[k] * self.quality_weights[k] for k in self.quality_weights)
        return ScoreResult(round(_clamp(total), 2), breakdown, reasoning, recommendations)

    @staticmethod
    def _floor(value: float, label: str, reasoning: list[str]) -> float:
        """Weak signals are floored at 0.3 so one bad input cannot zero a record."""
        if value < 0.5:
            reasoning.append(f"{label} is low")
            return max(value, 0.3)
        return value

    @staticmethod
    def _verification_score(status: VerificationStatus, reasoning: list[str]) -> float:
        score = VERIFICATION_SCORES.get(status, 0.5)
        reasoning.append(f"Verification status {status}")
        return score

    # -------------------------------------------------------------------------
    # Relevance
    # -------------------------------------------------------------------------

    def calculate_relevance_score(
        self,
        contact: ExtractedContact,
        content: ParsedContent | None = None,
        target_beats: list[str] | None = None,
        target_outlets: list[str] | None = None,
        target_languages: list[str] | None = None,
    ) -> ScoreResult:
        """How well the contact fits the search intent."""
        score = 0.5
        factors: dict[str, float] = {}
        reasoning: list[str] = []
        text = " ".join(filter(None, [contact.name, contact.title, contact.bio])).lower()

        def add(name: str, amount: float, why: str) -> None:
            nonlocal score
            score += amount
            factors[name] = amount
            reasoning.append(why)

        if any(k in text for k in JOURNALIST_KEYWORDS):
            add("journalist_role", 0.2, "Journalism role indicated")
        if contact.bio and MEDIA_OUTLET_REGEX.search(contact.bio):
            add("media_outlet", 0.15, "Bio names a media outlet")
        if content is not None:
            if content.author and contact.name.lower() in content.author.lower():
                add("byline", 0.15, "Contact is the byline author")
            if contact.email and contact.email.lower() in content.content.lower():
                add("email_in_content", 0.1, "Email appears in source content")
        if contact.title and is_professional_title(contact.title):
            add("relevant_title", 0.1, "Relevant professional title")

        if target_beats and any(b.lower() in text for b in target_beats):
            add("beat_match", 0.1, "Matches target beats")
        if target_outlets:
            haystack = " ".join(
                filter(None, [contact.bio, contact.email, contact.source_url])
            ).lower()
            if any(o.lower() in haystack for o in target_outlets):
                add("outlet_match", 0.1, "Matches target outlets")
        if target_languages and content is not None and content.language:
            if content.language.lower()[:2] in [lang.lower()[:2] for lang in target_languages]:
                add("language_match", 0.05, "Matches target language")

        return ScoreResult(round(_clamp(score), 2), factors, reasoning)


def contact_completeness(contact: ExtractedContact) -> float:
    """Share of name/email/title/bio/social that is filled in."""
    present = 0
    for value in (contact.name, contact.email, contact.title, contact.bio):
        if value and value.strip() and value != "Unknown":
            present += 1
    if contact.social_profiles:
        present += 1
    return present / 5
