"""
Contactmine data models - strict Pydantic schemas for contact extraction.

Design principles:
- extra="forbid" everywhere (fail fast if a stage invents fields)
- Scores are always clamped to [0, 1]
- A contact belongs to exactly one job and one source URL
- Contacts are born PENDING and never self-promote past it
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# TYPE LITERALS
# =============================================================================

SourceType = Literal["WEB_PAGE", "ARTICLE", "RSS_FEED", "SOCIAL", "DOCUMENT", "OTHER"]

ExtractionMethod = Literal["AI_BASED", "RULE_BASED", "HYBRID", "MANUAL"]

VerificationStatus = Literal["PENDING", "CONFIRMED", "REJECTED", "MANUAL_REVIEW"]

EmailType = Literal["PERSONAL", "ALIAS", "GENERIC", "DISPOSABLE", "TEMPORARY", "UNKNOWN"]

EmailValidationStatus = Literal["PENDING", "VALID", "INVALID", "UNKNOWN"]

JobStatus = Literal["PENDING", "PROCESSING", "COMPLETED", "FAILED", "CANCELLED"]

DuplicateType = Literal[
    "EMAIL",
    "NAME_OUTLET",
    "NAME_TITLE",
    "OUTLET_TITLE",
    "SIMILAR_BIO",
    "SOCIAL_MEDIA",
]

ContentFormat = Literal["text", "markdown", "html"]


def clamp_score(value: float) -> float:
    """Clamp a score into [0, 1]."""
    return max(0.0, min(float(value), 1.0))


def utcnow() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# REQUEST
# =============================================================================


class Source(BaseModel):
    """One URL to be mined for contacts."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    url: str = Field(..., min_length=1, description="Source URL")
    type: SourceType = Field(default="WEB_PAGE")
    priority: int = Field(default=1, ge=0)


class ExtractionOptions(BaseModel):
    """Per-request switches and limits for the extraction pipeline."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Stage switches
    enable_ai_enhancement: bool = True
    enable_email_validation: bool = True
    enable_social_detection: bool = True
    enable_duplicate_detection: bool = True
    enable_quality_assessment: bool = True
    enable_caching: bool = True

    # Limits
    confidence_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    max_contacts_per_source: int = Field(default=10, ge=1)
    processing_timeout: float = Field(default=30.0, gt=0, description="Seconds per model call")
    batch_size: int = Field(default=10, ge=1, description="Contacts persisted per store call")
    max_concurrent: int = Field(default=1, ge=1, description="Sources processed in parallel")

    # Content inclusion
    include_bio: bool = True
    include_social_profiles: bool = True
    strict_validation: bool = False


class ExtractionRequest(BaseModel):
    """An extraction job submission. Immutable once submitted."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    search_id: str = Field(..., min_length=1)
    sources: tuple[Source, ...] = Field(..., min_length=1)
    options: ExtractionOptions = Field(default_factory=ExtractionOptions)
    user_id: str = Field(..., min_length=1)


# =============================================================================
# PARSED CONTENT
# =============================================================================


class ContentMetadata(BaseModel):
    """Metadata pulled from a page alongside its text."""

    model_config = ConfigDict(extra="forbid")

    description: str | None = None
    keywords: list[str] = Field(default_factory=list)
    language: str | None = None
    og_title: str | None = None
    og_description: str | None = None
    og_image: str | None = None
    domain: str = ""
    word_count: int = 0
    reading_time: int = Field(default=0, description="Minutes at 200 words/minute")


class ParsedContent(BaseModel):
    """Normalized text and metadata for one fetched URL."""

    model_config = ConfigDict(extra="forbid")

    url: str
    title: str | None = None
    author: str | None = None
    published_at: datetime | None = None
    description: str | None = None
    content: str = ""
    html: str | None = None
    links: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    language: str | None = None
    metadata: ContentMetadata = Field(default_factory=ContentMetadata)


# =============================================================================
# CONTACTS
# =============================================================================


class SocialProfile(BaseModel):
    """A social media presence for a contact."""

    model_config = ConfigDict(extra="forbid")

    platform: str = Field(..., min_length=1)
    handle: str = Field(..., min_length=1)
    url: str = ""
    verified: bool = False
    followers: int | None = None
    description: str | None = None


class ContactInfo(BaseModel):
    """Secondary contact channels."""

    model_config = ConfigDict(extra="forbid")

    phone: str | None = None
    website: str | None = None
    linkedin: str | None = None
    twitter: str | None = None


class ExtractedContact(BaseModel):
    """A journalist/expert contact extracted from one source."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    extraction_id: str = Field(..., min_length=1)
    search_id: str = Field(..., min_length=1)
    source_url: str = Field(..., min_length=1)

    name: str = Field(..., min_length=1)
    title: str | None = None
    bio: str | None = None
    email: str | None = None

    email_type: EmailType | None = None
    email_validation_status: EmailValidationStatus = "PENDING"

    confidence_score: float = Field(default=0.5, ge=0.0, le=1.0)
    relevance_score: float = Field(default=0.5, ge=0.0, le=1.0)
    quality_score: float = Field(default=0.5, ge=0.0, le=1.0)

    extraction_method: ExtractionMethod = "AI_BASED"
    social_profiles: list[SocialProfile] = Field(default_factory=list)
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    verification_status: VerificationStatus = "PENDING"

    is_duplicate: bool = False
    duplicate_of: str | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)

    def log_step(self, step: str, **details: Any) -> None:
        """Append an entry to the processing step log in metadata."""
        steps = self.metadata.setdefault("processing_steps", [])
        steps.append({"step": step, "at": utcnow().isoformat(), **details})


def contact_sort_key(contact: ExtractedContact) -> tuple[float, datetime, str]:
    """Deterministic ordering: confidence desc, created_at asc, id asc."""
    return (-contact.confidence_score, contact.created_at, contact.id)


# =============================================================================
# QUALITY ASSESSMENT
# =============================================================================


class QualityFactors(BaseModel):
    """Inputs to a contact's quality score."""

    model_config = ConfigDict(extra="forbid")

    source_credibility: float = Field(default=0.5, ge=0.0, le=1.0)
    content_freshness: float = Field(default=0.5, ge=0.0, le=1.0)
    contact_completeness: float = Field(default=0.5, ge=0.0, le=1.0)
    information_consistency: float = Field(default=0.5, ge=0.0, le=1.0)
    overall_quality: float = Field(default=0.5, ge=0.0, le=1.0)


class ContentQualityAssessment(BaseModel):
    """Quality verdict for one source document."""

    model_config = ConfigDict(extra="forbid")

    url: str
    credibility: float = Field(ge=0.0, le=1.0)
    relevance: float = Field(ge=0.0, le=1.0)
    freshness: float = Field(ge=0.0, le=1.0)
    authority: float = Field(ge=0.0, le=1.0)
    spam_score: float = Field(ge=0.0, le=1.0)
    content_length: int = 0
    language: str = "unknown"
    has_contact_info: bool = False
    is_journalistic: bool = False
    overall_score: float = Field(ge=0.0, le=1.0)
    factors: QualityFactors = Field(default_factory=QualityFactors)
    recommendations: list[str] = Field(default_factory=list)


# =============================================================================
# DUPLICATES
# =============================================================================


class DuplicateGroup(BaseModel):
    """A cluster of contacts believed to be one real person."""

    model_config = ConfigDict(extra="forbid")

    id: str
    contacts: list[str] = Field(..., min_length=2, description="Member contact ids")
    similarity_score: float = Field(ge=0.0, le=1.0)
    duplicate_type: DuplicateType
    confidence_score: float = Field(ge=0.0, le=1.0)
    selected_contact: str = Field(..., description="Canonical member id")
    reasoning: str = ""


class DuplicateDetectionResult(BaseModel):
    """Outcome of one duplicate detection pass."""

    model_config = ConfigDict(extra="forbid")

    unique_contacts: list[ExtractedContact] = Field(default_factory=list)
    duplicate_contacts: list[ExtractedContact] = Field(
        default_factory=list, description="Flagged non-canonical members"
    )
    duplicate_groups: list[DuplicateGroup] = Field(default_factory=list)
    total_duplicates: int = 0
    duplicate_rate: float = 0.0


# =============================================================================
# CACHE
# =============================================================================


class CacheEntry(BaseModel):
    """One cached extraction for a URL."""

    model_config = ConfigDict(extra="forbid")

    content_hash: str
    url: str
    contacts: list[ExtractedContact] = Field(default_factory=list)
    quality_score: float = Field(default=0.0, ge=0.0, le=1.0)
    expires_at: datetime
    access_count: int = 0
    last_accessed_at: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# RESULTS & PERSISTENCE RECORDS
# =============================================================================


class ScoreDistribution(BaseModel):
    """Bucket counts: high > 0.8, medium 0.5-0.8, low < 0.5."""

    model_config = ConfigDict(extra="forbid")

    high: int = 0
    medium: int = 0
    low: int = 0


class ValidationResults(BaseModel):
    """Share of contacts that passed each validation stage."""

    model_config = ConfigDict(extra="forbid")

    email_validation_rate: float = 0.0
    social_validation_rate: float = 0.0
    duplicate_detection_rate: float = 0.0


class ExtractionMetrics(BaseModel):
    """Aggregate metrics for one extraction job."""

    model_config = ConfigDict(extra="forbid")

    processing_speed: float = Field(default=0.0, description="Contacts per second")
    accuracy_estimate: float = 0.0
    confidence_distribution: ScoreDistribution = Field(default_factory=ScoreDistribution)
    quality_distribution: ScoreDistribution = Field(default_factory=ScoreDistribution)
    source_quality_distribution: ScoreDistribution = Field(default_factory=ScoreDistribution)
    extraction_method_breakdown: dict[str, int] = Field(default_factory=dict)
    validation_results: ValidationResults = Field(default_factory=ValidationResults)


class ExtractionResult(BaseModel):
    """Everything a caller gets back from one extraction job."""

    model_config = ConfigDict(extra="forbid")

    extraction_id: str
    job_id: str
    status: JobStatus
    sources_processed: int = 0
    contacts_found: int = 0
    contacts_imported: int = 0
    average_confidence: float = 0.0
    average_quality: float = 0.0
    processing_time_ms: int = 0
    contacts: list[ExtractedContact] = Field(default_factory=list)
    duplicate_contacts: list[ExtractedContact] = Field(default_factory=list)
    duplicate_groups: list[DuplicateGroup] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    metrics: ExtractionMetrics = Field(default_factory=ExtractionMetrics)


class ExtractionJob(BaseModel):
    """Persisted job record, updated through status transitions."""

    model_config = ConfigDict(extra="forbid")

    id: str
    extraction_id: str
    search_id: str
    user_id: str
    status: JobStatus = "PENDING"
    sources: list[str] = Field(default_factory=list)
    options: ExtractionOptions = Field(default_factory=ExtractionOptions)
    sources_processed: int = 0
    total_sources: int = 0
    contacts_found: int = 0
    contacts_imported: int = 0
    duplicates_found: int = 0
    average_confidence: float = 0.0
    average_quality: float = 0.0
    processing_time_ms: int = 0
    errors: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None


class PerformanceLog(BaseModel):
    """Timing record for one pipeline stage of one job."""

    model_config = ConfigDict(extra="forbid")

    id: str
    job_id: str
    stage: str
    duration_ms: int = 0
    items_processed: int = 0
    success: bool = True
    error: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class PerformanceStats(BaseModel):
    """Throughput/latency summary across jobs."""

    model_config = ConfigDict(extra="forbid")

    throughput: float = Field(default=0.0, description="Contacts per second")
    average_latency_ms: float = 0.0
    error_rate: float = 0.0


class ExtractionStatistics(BaseModel):
    """Aggregate usage/quality/performance report."""

    model_config = ConfigDict(extra="forbid")

    total_extractions: int = 0
    successful_extractions: int = 0
    failed_extractions: int = 0
    total_contacts: int = 0
    average_contacts_per_source: float = 0.0
    average_confidence: float = 0.0
    average_processing_time_ms: float = 0.0
    method_breakdown: dict[str, int] = Field(default_factory=dict)
    quality_distribution: ScoreDistribution = Field(default_factory=ScoreDistribution)
    validation_stats: ValidationResults = Field(default_factory=ValidationResults)
    performance: PerformanceStats = Field(default_factory=PerformanceStats)
