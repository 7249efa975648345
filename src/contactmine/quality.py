"""
Contactmine content quality - is a source worth mining for contacts?

The assessment feeds two places:
- the strict-mode gate (overall_score < 0.3 rejects the source before the model runs)
- the quality factors used when scoring each contact from that source
"""

import re
from datetime import UTC, datetime
from urllib.parse import urlparse

from .models import ContentQualityAssessment, ParsedContent, QualityFactors

ASSESSMENT_WEIGHTS = {
    "credibility": 0.30,
    "relevance": 0.25,
    "freshness": 0.15,
    "authority": 0.15,
    "spam": 0.10,
    "contact_richness": 0.05,
}

CREDIBLE_DOMAINS = {
    # News organizations
    "nytimes.com",
    "washingtonpost.com",
    "wsj.com",
    "cnn.com",
    "bbc.co.uk",
    "bbc.com",
    "reuters.com",
    "ap.org",
    "npr.org",
    "pbs.org",
    "time.com",
    "newsweek.com",
    "theguardian.com",
    "ft.com",
    "economist.com",
    "bloomberg.com",
    "wired.com",
    "techcrunch.com",
    "vox.com",
    "axios.com",
    "politico.com",
    "thehill.com",
    # Business publications
    "forbes.com",
    "fortune.com",
    "inc.com",
    "hbr.org",
    "fastcompany.com",
    "businessinsider.com",
    "marketwatch.com",
    "cnbc.com",
    # Academic / government
    "mit.edu",
    "stanford.edu",
    "harvard.edu",
    "oxford.ac.uk",
    "cambridge.ac.uk",
    "whitehouse.gov",
    "congress.gov",
}

TOP_TIER_DOMAINS = {
    "nytimes.com",
    "washingtonpost.com",
    "wsj.com",
    "cnn.com",
    "bbc.co.uk",
    "reuters.com",
    "ap.org",
    "npr.org",
    "time.com",
}

SUSPICIOUS_DOMAIN_PATTERNS = (
    re.compile(r"\.(tk|ml|ga|cf)$"),
    re.compile(r"^\d+\."),
    re.compile(r"\.(xyz|info|biz|click|download|stream)$"),
)

SPAM_DOMAIN_WORDS = ("spam", "fake", "scam", "test", "demo", "placeholder")

SPAM_PATTERNS = (
    re.compile(r"\b(you won't believe|shocking|unbelievable|must see)\b", re.I),
    re.compile(r"\b(one simple trick|this one weird|doctors hate|the secret to)\b", re.I),
    re.compile(r"!{3,}"),
    re.compile(r"\b(free money|cash prize|winner|congratulations|limited time|act now)\b", re.I),
    re.compile(r"\b(lose weight|make money|work from home|click here|buy now)\b", re.I),
    re.compile(r"\b(lorem ipsum|placeholder)\b", re.I),
    re.compile(r"^(under construction|coming soon)", re.I),
)

SUPPORTED_LANGUAGES = ("en", "es", "fr", "de", "it", "pt", "ja", "ko", "zh")

JOURNALISTIC_INDICATORS = (
    "reporter",
    "journalist",
    "editor",
    "author",
    "writer",
    "correspondent",
    "news",
    "article",
    "story",
    "investigation",
    "analysis",
    "opinion",
    "byline",
    "interview",
    "press",
    "media",
)

CONTACT_INDICATORS = (
    "@",
    "email",
    "mailto:",
    "contact",
    "reach out",
    "phone",
    "twitter.com",
    "linkedin.com",
    "instagram.com",
    "facebook.com",
    "editor",
    "reporter",
    "journalist",
    "author",
    "writer",
    "contributor",
)

EMAIL_REGEX = re.compile(r"\b[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}\b", re.I)
PHONE_REGEX = re.compile(r"\b(?:\+?1[-.\s]?)?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4}\b")
SOCIAL_URL_REGEX = re.compile(r"\b(?:twitter|linkedin|instagram|facebook)\.com/\w+", re.I)
SENIOR_TITLE_REGEX = re.compile(
    r"\b(senior|lead|chief|executive|managing)\s+(editor|reporter|writer|producer|journalist)\b",
    re.I,
)
BEAT_TITLE_REGEX = re.compile(
    r"\b(news|politics|business|tech|health)\s+(editor|reporter|correspondent)\b", re.I
)
OUTLET_REGEX = re.compile(
    r"\b(new york times|washington post|wall street journal|cnn|bbc|reuters|associated press|"
    r"los angeles times|chicago tribune|boston globe|techcrunch|wired|the verge)\b",
    re.I,
)
CONTACT_SECTION_REGEX = re.compile(
    r"\b(contact|reach out to|follow|connect with)\s+(us|me|the author)\b|"
    r"\b(media inquiries|press inquiries)\b",
    re.I,
)


def _domain(url: str) -> str:
    domain = urlparse(url).netloc.lower()
    if domain.startswith("www."):
        domain = domain[4:]
    return domain


def _matches_domain(domain: str, table: set[str]) -> bool:
    return any(domain == d or domain.endswith("." + d) for d in table)


def has_contact_info(text: str) -> bool:
    text = text.lower()
    return any(indicator in text for indicator in CONTACT_INDICATORS)


class ContentQualityAssessor:
    """Score a parsed source for credibility, freshness, authority and spam."""

    def __init__(self, now: datetime | None = None):
        self._now = now

    def _current_time(self) -> datetime:
        return self._now or datetime.now(UTC)

    def assess_content_quality(self, content: ParsedContent) -> ContentQualityAssessment:
        credibility = self.assess_credibility(content)
        relevance = self.assess_relevance(content)
        freshness = self.assess_freshness(content)
        authority = self.assess_authority(content)
        spam_score = self.assess_spam_score(content)
        richness = self.assess_contact_info_richness(content)

        w = ASSESSMENT_WEIGHTS
        overall = round(
            credibility * w["credibility"]
            + relevance * w["relevance"]
            + freshness * w["freshness"]
            + authority * w["authority"]
            + (1 - spam_score) * w["spam"]
            + richness * w["contact_richness"],
            2,
        )

        factors = QualityFactors(
            source_credibility=credibility,
            content_freshness=freshness,
            contact_completeness=richness,
            information_consistency=self.assess_information_consistency(content),
            overall_quality=overall,
        )

        return ContentQualityAssessment(
            url=content.url,
            credibility=credibility,
            relevance=relevance,
            freshness=freshness,
            authority=authority,
            spam_score=spam_score,
            content_length=len(content.content),
            language=content.language or "unknown",
            has_contact_info=has_contact_info(content.content),
            is_journalistic=self.is_journalistic(content),
            overall_score=overall,
            factors=factors,
            recommendations=self._recommendations(
                credibility, relevance, freshness, authority, spam_score, richness, overall
            ),
        )

    def batch_assess_quality(self, contents: list[ParsedContent]) -> list[ContentQualityAssessment]:
        return [self.assess_content_quality(c) for c in contents]

    # -------------------------------------------------------------------------
    # Individual dimensions
    # -------------------------------------------------------------------------

    def assess_credibility(self, content: ParsedContent) -> float:
        score = 0.5
        domain = _domain(content.url)
        if _matches_domain(domain, CREDIBLE_DOMAINS):
            score += 0.3
        elif self._is_suspicious_domain(domain):
            score -= 0.2
        if content.author and content.author.strip():
            score += 0.1
        if content.published_at:
            score += 0.05
        if content.title and 10 < len(content.title) < 200:
            score += 0.05

        words = content.metadata.word_count
        if 200 <= words <= 2000:
            score += 0.05
        elif words < 100:
            score -= 0.1
        if 1 <= content.metadata.reading_time <= 10:
            score += 0.05
        if content.language and content.language.lower()[:2] in SUPPORTED_LANGUAGES:
            score += 0.05
        if len(content.links) > 5:
            score += 0.05
        if content.images:
            score += 0.05
        return round(max(0.0, min(score, 1.0)), 2)

    def assess_relevance(self, content: ParsedContent) -> float:
        score = 0.5
        text = content.content.lower()
        title = (content.title or "").lower()

        title_keywords = ("journalist", "reporter", "editor", "author", "writer", "news", "media")
        if any(k in title for k in title_keywords):
            score += 0.2
        if has_contact_info(text):
            score += 0.2
        if "by " in text or "written by" in text:
            score += 0.1
        if OUTLET_REGEX.search(text):
            score += 0.1
        if SENIOR_TITLE_REGEX.search(text) or BEAT_TITLE_REGEX.search(text):
            score += 0.1
        if EMAIL_REGEX.search(text):
            score += 0.05
        if SOCIAL_URL_REGEX.search(text):
            score += 0.05
        if CONTACT_SECTION_REGEX.search(text):
            score += 0.1
        return round(max(0.0, min(score, 1.0)), 2)

    def assess_freshness(self, content: ParsedContent) -> float:
        """Step function on days since publication; unknown dates get 0.5."""
        if not content.published_at:
            return 0.5
        published = content.published_at
        if published.tzinfo is None:
            published = published.replace(tzinfo=UTC)
        days = (self._current_time() - published).days
        if days <= 1:
            return 1.0
        if days <= 7:
            return 0.9
        if days <= 30:
            return 0.8
        if days <= 90:
            return 0.6
        if days <= 365:
            return 0.4
        return 0.2

    def assess_authority(self, content: ParsedContent) -> float:
        score = 0.5
        domain = _domain(content.url)
        if _matches_domain(domain, TOP_TIER_DOMAINS):
            score += 0.3
        elif _matches_domain(domain, CREDIBLE_DOMAINS):
            score += 0.2
        elif self._is_suspicious_domain(domain):
            score -= 0.2
        if content.url.startswith("https://"):
            score += 0.1
        url = content.url.lower()
        if not any(f"{p}=" in url for p in ("utm_source", "campaign", "affiliate", "ref")):
            score += 0.1

        text = content.content.lower()
        if re.search(r"\b(introduction|background|analysis|conclusion|source|reference)\b", text):
            score += 0.1
        if re.search(
            r"\b(expert|specialist|analyst|researcher|professor|ph\.?d)\b|\d+\s*years?\s*of\s*experience",
            text,
        ):
            score += 0.1
        return round(max(0.0, min(score, 1.0)), 2)

    def assess_spam_score(self, content: ParsedContent) -> float:
        """0 = clean, 1 = spam."""
        score = 0.0
        text = content.content
        title = content.title or ""
        for pattern in SPAM_PATTERNS:
            if pattern.search(text) or pattern.search(title):
                score += 0.1

        if text.count("!") + text.count("?") > 10:
            score += 0.1
        if len(re.findall(r"\b[A-Z]{5,}\b", text)) > 5:
            score += 0.1

        words = text.lower().split()
        if words:
            frequency: dict[str, int] = {}
            for word in words:
                frequency[word] = frequency.get(word, 0) + 1
            repeated = sum(1 for count in frequency.values() if count > 10)
            if repeated / len(words) > 0.1:
                score += 0.1

        domain = _domain(content.url)
        if any(word in domain for word in SPAM_DOMAIN_WORDS):
            score += 0.3
        return round(max(0.0, min(score, 1.0)), 2)

    def assess_contact_info_richness(self, content: ParsedContent) -> float:
        text = content.content.lower()
        score = 0.0
        emails = EMAIL_REGEX.findall(text)
        if emails:
            score += 0.2 * min(len(emails) / 3, 1)
        phones = PHONE_REGEX.findall(text)
        if phones:
            score += 0.15 * min(len(phones) / 2, 1)
        socials = len(SOCIAL_URL_REGEX.findall(text)) + len(re.findall(r"(?<!\w)@\w+", text))
        if socials:
            score += 0.15 * min(socials / 3, 1)
        titles = SENIOR_TITLE_REGEX.findall(text)
        if titles:
            score += 0.2 * min(len(titles) / 2, 1)
        outlets = re.findall(r"\b(?:at|for|from)\s+(?:new york times|washington post|cnn|bbc|reuters)\b", text)
        if outlets:
            score += 0.15 * min(len(outlets) / 2, 1)
        if re.search(r"\bcontact\s+(information|details|email|phone)\b|\breach\s+(out|me|us)\b", text):
            score += 0.15
        return round(max(0.0, min(score, 1.0)), 2)

    def assess_information_consistency(self, content: ParsedContent) -> float:
        score = 0.8
        text = content.content.lower()
        if content.title:
            title_words = content.title.lower().split()
            hits = sum(1 for w in title_words if len(w) > 3 and w in text)
            if title_words and hits / len(title_words) >= 0.5:
                score += 0.1
            else:
                score -= 0.1
        if content.author and content.author.lower() in text:
            score += 0.05
        domain = _domain(content.url)
        if domain and domain in text:
            score += 0.05
        return round(max(0.0, min(score, 1.0)), 2)

    def is_journalistic(self, content: ParsedContent) -> bool:
        combined = f"{(content.title or '').lower()} {content.content.lower()}"
        return sum(1 for i in JOURNALISTIC_INDICATORS if i in combined) >= 2

    @staticmethod
    def _is_suspicious_domain(domain: str) -> bool:
        return any(p.search(domain) for p in SUSPICIOUS_DOMAIN_PATTERNS)

    @staticmethod
    def _recommendations(
        credibility: float,
        relevance: float,
        freshness: float,
        authority: float,
        spam_score: float,
        richness: float,
        overall: float,
    ) -> list[str]:
        recommendations = []
        if credibility < 0.6:
            recommendations.append("Consider sources from established media organizations")
        if relevance < 0.6:
            recommendations.append("Look for content with more contact information")
        if freshness < 0.5:
            recommendations.append("Consider more recent content sources")
        if authority < 0.6:
            recommendations.append("Verify source authority and credentials")
        if spam_score > 0.4:
            recommendations.append("Content may contain spam-like characteristics")
        if richness < 0.3:
            recommendations.append("Content lacks sufficient contact information")
        if overall < 0.6:
            recommendations.append("Consider alternative sources with better quality indicators")
        if not recommendations:
            recommendations.append("Content quality is acceptable for contact extraction")
        return recommendations
