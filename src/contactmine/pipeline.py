"""
Contactmine pipeline - orchestrates extraction jobs from sources to stored contacts.

Per source: cache lookup -> parse -> quality gate -> AI identification ->
email validation -> social enrichment -> scoring -> confidence filter -> cache write.
Then, once for the whole job: global filters, per-source cap, duplicate
detection, metrics, persistence.

A failing source becomes a warning in result.errors; only a failing
aggregation phase fails the job.
"""

import secrets
import string
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from .cache import ExtractionCache
from .dedupe import DuplicateDetector, deduplicate_social_profiles
from .email_validator import EmailValidationOptions, EmailValidator
from .errors import ContactExtractionError, ExtractionError, LowQualityContentError
from .identifier import ContactIdentifier, ExtractionContext, IdentifierOptions, generate_contact_id
from .llm import RetryPolicy, TextCompletionService
from .logger import ProgressLogger
from .models import (
    ContentQualityAssessment,
    DuplicateDetectionResult,
    ExtractedContact,
    ExtractionJob,
    ExtractionMetrics,
    ExtractionOptions,
    ExtractionRequest,
    ExtractionResult,
    ExtractionStatistics,
    ParsedContent,
    PerformanceLog,
    PerformanceStats,
    ScoreDistribution,
    Source,
    ValidationResults,
    contact_sort_key,
    utcnow,
)
from .parser import ContentParser, ParseOptions
from .quality import ContentQualityAssessor
from .scoring import ConfidenceScorer
from .social import SocialProfileDetector
from .store import ContactStore, InMemoryContactStore

MIN_QUALITY_SCORE = 0.3
MIN_CONTENT_QUALITY = 0.3

# Email types dropped under strict validation
STRICT_REJECTED_EMAIL_TYPES = {"DISPOSABLE", "TEMPORARY"}

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_id(prefix: str) -> str:
    """prefix_<epoch ms>_<9 random base36 chars>."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def _average(values: list[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def _rate(count: int, total: int) -> float:
    return round(count / total, 2) if total else 0.0


def score_distribution(scores: list[float]) -> ScoreDistribution:
    """Buckets: high > 0.8, medium 0.5-0.8, low < 0.5."""
    return ScoreDistribution(
        high=sum(1 for s in scores if s > 0.8),
        medium=sum(1 for s in scores if 0.5 <= s <= 0.8),
        low=sum(1 for s in scores if s < 0.5),
    )


def method_breakdown(contacts: list[ExtractedContact]) -> dict[str, int]:
    breakdown: dict[str, int] = {}
    for contact in contacts:
        breakdown[contact.extraction_method] = breakdown.get(contact.extraction_method, 0) + 1
    return breakdown


@dataclass
class SourceOutcome:
    """What one source contributed to a job."""

    url: str
    contacts: list[ExtractedContact] = field(default_factory=list)
    error: str | None = None
    from_cache: bool = False
    skipped: bool = False
    content_quality: float | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and not self.skipped


class ExtractionOrchestrator:
    """Runs extraction jobs end to end."""

    def __init__(
        self,
        text_service: TextCompletionService,
        store: ContactStore | None = None,
        cache: ExtractionCache | None = None,
        parser: ContentParser | None = None,
        assessor: ContentQualityAssessor | None = None,
        email_validator: EmailValidator | None = None,
        social_detector: SocialProfileDetector | None = None,
        scorer: ConfidenceScorer | None = None,
        duplicate_detector: DuplicateDetector | None = None,
        retry_policy: RetryPolicy | None = None,
        verbose: bool = False,
        quiet: bool = False,
    ):
        self.store = store or InMemoryContactStore()
        self.cache = cache
        self.parser = parser or ContentParser()
        self.assessor = assessor or ContentQualityAssessor()
        self.email_validator = email_validator or EmailValidator()
        self.social_detector = social_detector or SocialProfileDetector()
        self.scorer = scorer or ConfidenceScorer()
        self.duplicate_detector = duplicate_detector or DuplicateDetector()
        self.identifier = ContactIdentifier(text_service, retry_policy=retry_policy)
        self.verbose = verbose
        self.quiet = quiet
        self._cancel_events: dict[str, threading.Event] = {}
        self._job_lock = threading.Lock()

    def close(self) -> None:
        """Release the HTTP client and model-call threads; the cache belongs to the caller."""
        self.identifier.close()
        self.parser.close()

    def __enter__(self) -> "ExtractionOrchestrator":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # =========================================================================
    # JOB LIFECYCLE
    # =========================================================================

    def submit_extraction(self, request: ExtractionRequest) -> ExtractionResult:
        """Run one extraction job to completion and return its result."""
        started = time.perf_counter()
        options = request.options
        extraction_id = generate_id("ext")
        job = ExtractionJob(
            id=generate_id("job"),
            extraction_id=extraction_id,
            search_id=request.search_id,
            user_id=request.user_id,
            sources=[s.url for s in request.sources],
            options=options,
            total_sources=len(request.sources),
        )
        logger = ProgressLogger(job.id, verbose=self.verbose, quiet=self.quiet)
        cancel_event = threading.Event()
        self._cancel_events[job.id] = cancel_event

        self.store.create_job(job)
        job.status = "PROCESSING"
        job.started_at = utcnow()
        self.store.update_job(job)
        logger.phase("Starting extraction", f"ID={job.id}, {len(request.sources)} sources")

        try:
            # Sources
            logger.phase("Processing sources", f"max_concurrent={options.max_concurrent}")
            stage_start = time.perf_counter()
            context = ExtractionContext(extraction_id=extraction_id, search_id=request.search_id)
            outcomes = self._process_sources(request, context, job, logger, cancel_event)
            processed = [o for o in outcomes if o.succeeded]
            self._log_stage(
                job.id, "source_processing", stage_start, len(processed), logger,
                success=len(processed) == len([o for o in outcomes if not o.skipped]),
            )

            errors = [o.error for o in outcomes if o.error]
            all_contacts = [c for o in outcomes for c in o.contacts]
            all_contacts.sort(key=contact_sort_key)
            job.sources_processed = len(processed)
            job.contacts_found = len(all_contacts)
            job.errors = list(errors)

            try:
                result = self._aggregate(
                    job, options, all_contacts, outcomes, errors, started, logger
                )
            except Exception as e:
                self._fail_job(job, e, started, logger)
                raise ExtractionError(
                    f"Contact extraction failed: {e}",
                    details={"extraction_id": extraction_id, "job_id": job.id},
                ) from e
        finally:
            self._cancel_events.pop(job.id, None)

        logger.finish(result.status, len(result.contacts), len(result.errors))
        return result

    def cancel_extraction(self, job_id: str) -> bool:
        """Ask a running job to skip its remaining sources. False if it is not running."""
        event = self._cancel_events.get(job_id)
        if event is None:
            return False
        event.set()
        return True

    def _fail_job(
        self, job: ExtractionJob, error: Exception, started: float, logger: ProgressLogger
    ) -> None:
        job.status = "FAILED"
        job.errors.append(f"Aggregation failed: {error}")
        job.completed_at = utcnow()
        job.processing_time_ms = int((time.perf_counter() - started) * 1000)
        logger.error(f"Job {job.id} failed: {error}")
        try:
            self.store.update_job(job)
        except Exception as e:
            logger.warning(f"Could not record failure of job {job.id}: {e}")
        self._log_stage(job.id, "completion", started, 0, logger, success=False, error=str(error))
        logger.finish(job.status, 0, len(job.errors))

    # =========================================================================
    # PER-SOURCE PIPELINE
    # =========================================================================

    def _process_sources(
        self,
        request: ExtractionRequest,
        context: ExtractionContext,
        job: ExtractionJob,
        logger: ProgressLogger,
        cancel_event: threading.Event,
    ) -> list[SourceOutcome]:
        """Run every source under its own error boundary; outcomes in request order."""
        sources = list(request.sources)
        outcomes: dict[int, SourceOutcome] = {}
        total = len(sources)

        def run(source: Source) -> SourceOutcome:
            if cancel_event.is_set():
                logger.skip("Cancelled", source.url)
                return SourceOutcome(url=source.url, skipped=True)
            return self._process_source_safely(source, request.options, context, logger)

        with ThreadPoolExecutor(max_workers=request.options.max_concurrent) as executor:
            futures = {executor.submit(run, s): i for i, s in enumerate(sources)}
            completed = 0
            for future in as_completed(futures):
                index = futures[future]
                outcome = future.result()
                outcomes[index] = outcome
                completed += 1
                if outcome.skipped:
                    continue
                logger.progress(outcome.url, completed, total)
                if outcome.error:
                    logger.warning(outcome.error)
                else:
                    logger.source(outcome.url, len(outcome.contacts), outcome.from_cache)
                self._record_progress(job, outcome, logger)

        return [outcomes[i] for i in range(total)]

    def _record_progress(
        self, job: ExtractionJob, outcome: SourceOutcome, logger: ProgressLogger
    ) -> None:
        with self._job_lock:
            if outcome.succeeded:
                job.sources_processed += 1
                job.contacts_found += len(outcome.contacts)
            try:
                self.store.update_job(job)
            except Exception as e:
                logger.warning(f"Could not record progress for job {job.id}: {e}")

    def _process_source_safely(
        self,
        source: Source,
        options: ExtractionOptions,
        context: ExtractionContext,
        logger: ProgressLogger,
    ) -> SourceOutcome:
        try:
            return self.process_source(source, options, context, logger)
        except ContactExtractionError as e:
            return SourceOutcome(url=source.url, error=f"Failed to process {source.url}: {e}")
        except Exception as e:
            return SourceOutcome(
                url=source.url, error=f"Failed to process {source.url}: unexpected error: {e}"
            )

    def process_source(
        self,
        source: Source,
        options: ExtractionOptions,
        context: ExtractionContext,
        logger: ProgressLogger | None = None,
    ) -> SourceOutcome:
        """The per-source pipeline. Raises on any source-level failure."""
        logger = logger or ProgressLogger("source", quiet=True)
        url = source.url

        cached = self._cache_lookup(url, options, context, logger)
        if cached is not None:
            return SourceOutcome(url=url, contacts=cached, from_cache=True)

        content = self.parser.parse(url, ParseOptions(format="markdown", include_images=False))

        assessment = self.assessor.assess_content_quality(content)
        if options.strict_validation and assessment.overall_score < MIN_CONTENT_QUALITY:
            raise LowQualityContentError(
                f"Content quality too low: {assessment.overall_score:.2f}",
                details={"url": url, "overall_score": assessment.overall_score},
            )

        contacts: list[ExtractedContact] = []
        if options.enable_ai_enhancement:
            contacts = self.identifier.extract_contacts(
                content,
                context,
                IdentifierOptions(
                    max_contacts=options.max_contacts_per_source,
                    include_bio=options.include_bio,
                    include_social_profiles=options.include_social_profiles,
                    strict_validation=options.strict_validation,
                ),
                timeout=options.processing_timeout,
            )

        if options.enable_email_validation:
            self._validate_emails(contacts, options)
        if options.enable_social_detection and options.include_social_profiles:
            self._enrich_social(contacts)
        self._score(contacts, content, assessment)

        before = len(contacts)
        contacts = [c for c in contacts if c.confidence_score >= options.confidence_threshold]
        if len(contacts) < before:
            logger.skip(
                "Below confidence threshold",
                f"{before - len(contacts)} candidates from {url}",
            )

        self._cache_store(url, content, contacts, assessment.overall_score, options, logger)
        return SourceOutcome(url=url, contacts=contacts, content_quality=assessment.overall_score)

    # -- cache ----------------------------------------------------------------

    def _cache_lookup(
        self,
        url: str,
        options: ExtractionOptions,
        context: ExtractionContext,
        logger: ProgressLogger,
    ) -> list[ExtractedContact] | None:
        if self.cache is None or not options.enable_caching:
            return None
        try:
            cached = self.cache.get(url)
        except Exception as e:
            logger.warning(f"Cache read failed for {url}, bypassing cache: {e}")
            return None
        logger.cache(url, cached is not None)
        if cached is None:
            return None

        # Cached contacts are re-issued under this job's ids
        for contact in cached:
            contact.id = generate_contact_id()
            contact.extraction_id = context.extraction_id
            contact.search_id = context.search_id
            contact.log_step("cache_hit")
        return cached

    def _cache_store(
        self,
        url: str,
        content: ParsedContent,
        contacts: list[ExtractedContact],
        quality_score: float,
        options: ExtractionOptions,
        logger: ProgressLogger,
    ) -> None:
        if self.cache is None or not options.enable_caching:
            return
        try:
            self.cache.set(url, content, contacts, quality_score)
        except Exception as e:
            logger.warning(f"Cache write failed for {url}: {e}")

    # -- enrichment -------------------------------------------------------------

    def _validate_emails(self, contacts: list[ExtractedContact], options: ExtractionOptions) -> None:
        validation_options = EmailValidationOptions(strict_mode=options.strict_validation)
        for contact in contacts:
            if not contact.email:
                continue
            result = self.email_validator.validate_email(contact.email, validation_options)
            contact.email_validation_status = "VALID" if result.is_valid else "INVALID"
            contact.email_type = "DISPOSABLE" if result.is_disposable else result.email_type
            contact.metadata["email_validation"] = {
                "is_valid": result.is_valid,
                "spam_score": result.spam_score,
                "confidence": result.confidence,
                "reasoning": result.reasoning,
            }
            contact.log_step("email_validation", valid=result.is_valid)

    def _enrich_social(self, contacts: list[ExtractedContact]) -> None:
        for contact in contacts:
            if not contact.bio:
                continue
            found = self.social_detector.detect_and_validate(contact.bio)
            if not found:
                continue
            contact.social_profiles = deduplicate_social_profiles(contact.social_profiles + found)
            for profile in contact.social_profiles:
                if profile.platform == "linkedin" and not contact.contact_info.linkedin:
                    contact.contact_info.linkedin = profile.url
                elif profile.platform == "twitter" and not contact.contact_info.twitter:
                    contact.contact_info.twitter = profile.url
            contact.log_step("social_detection", profiles=len(found))

    def _score(
        self,
        contacts: list[ExtractedContact],
        content: ParsedContent,
        assessment: ContentQualityAssessment,
    ) -> None:
        for contact in contacts:
            confidence = self.scorer.calculate_confidence_score(contact, assessment.credibility)
            quality = self.scorer.calculate_quality_score(contact, assessment.factors)
            relevance = self.scorer.calculate_relevance_score(contact, content)

            contact.confidence_score = confidence.score
            contact.quality_score = quality.score
            contact.relevance_score = relevance.score
            contact.metadata["confidence_factors"] = confidence.as_metadata()
            contact.metadata["quality_factors"] = quality.as_metadata()
            contact.metadata["relevance_factors"] = relevance.as_metadata()
            contact.log_step("scoring", confidence=confidence.score, quality=quality.score)

    # =========================================================================
    # AGGREGATION
    # =========================================================================

    def _aggregate(
        self,
        job: ExtractionJob,
        options: ExtractionOptions,
        all_contacts: list[ExtractedContact],
        outcomes: list[SourceOutcome],
        errors: list[str],
        started: float,
        logger: ProgressLogger,
    ) -> ExtractionResult:
        logger.phase("Filtering", f"{len(all_contacts)} contacts")
        stage_start = time.perf_counter()
        filtered = self.apply_quality_filters(all_contacts, options, logger)
        self._log_stage(job.id, "quality_filtering", stage_start, len(filtered), logger)

        if options.enable_duplicate_detection:
            logger.phase("Deduplicating", f"{len(filtered)} contacts")
            stage_start = time.perf_counter()
            dedup = self.duplicate_detector.detect_duplicates(filtered)
            logger.deduped(len(filtered), len(dedup.unique_contacts), len(dedup.duplicate_groups))
            self._log_stage(
                job.id, "duplicate_detection", stage_start, len(dedup.unique_contacts), logger
            )
        else:
            dedup = DuplicateDetectionResult(unique_contacts=list(filtered))

        unique = sorted(dedup.unique_contacts, key=contact_sort_key)

        logger.phase("Persisting", f"{len(unique)} contacts")
        stage_start = time.perf_counter()
        imported = 0
        for i in range(0, len(unique), options.batch_size):
            imported += self.store.save_contacts(unique[i : i + options.batch_size])
        self._log_stage(job.id, "persistence", stage_start, imported, logger)

        processing_time_ms = int((time.perf_counter() - started) * 1000)
        cancelled = any(o.skipped for o in outcomes)
        status = "CANCELLED" if cancelled else "COMPLETED"
        if cancelled:
            errors.append(
                f"Cancelled: {sum(1 for o in outcomes if o.skipped)} sources not processed"
            )

        job.status = status
        job.contacts_imported = imported
        job.duplicates_found = dedup.total_duplicates
        job.average_confidence = _average([c.confidence_score for c in unique])
        job.average_quality = _average([c.quality_score for c in unique])
        job.processing_time_ms = processing_time_ms
        job.errors = list(errors)
        job.completed_at = utcnow()
        self.store.update_job(job)
        self._log_stage(job.id, "completion", started, len(unique), logger)

        return ExtractionResult(
            extraction_id=job.extraction_id,
            job_id=job.id,
            status=status,
            sources_processed=job.sources_processed,
            contacts_found=len(all_contacts),
            contacts_imported=imported,
            average_confidence=job.average_confidence,
            average_quality=job.average_quality,
            processing_time_ms=processing_time_ms,
            contacts=unique,
            duplicate_contacts=dedup.duplicate_contacts,
            duplicate_groups=dedup.duplicate_groups,
            errors=errors,
            metrics=self.calculate_metrics(all_contacts, unique, outcomes, dedup, processing_time_ms),
        )

    def apply_quality_filters(
        self,
        contacts: list[ExtractedContact],
        options: ExtractionOptions,
        logger: ProgressLogger | None = None,
    ) -> list[ExtractedContact]:
        """Global filters, then keep the top max_contacts_per_source per source by confidence."""
        logger = logger or ProgressLogger("filters", quiet=True)

        before = len(contacts)
        result = [c for c in contacts if c.confidence_score >= options.confidence_threshold]
        logger.filtered(before, len(result), "confidence threshold")

        if options.enable_quality_assessment:
            before = len(result)
            result = [c for c in result if c.quality_score >= MIN_QUALITY_SCORE]
            logger.filtered(before, len(result), "quality score")

        if options.strict_validation:
            before = len(result)
            result = [c for c in result if c.email_type not in STRICT_REJECTED_EMAIL_TYPES]
            logger.filtered(before, len(result), "strict email type")

        by_source: dict[str, list[ExtractedContact]] = {}
        for contact in result:
            by_source.setdefault(contact.source_url, []).append(contact)
        capped: list[ExtractedContact] = []
        for source_contacts in by_source.values():
            source_contacts.sort(key=contact_sort_key)
            capped.extend(source_contacts[: options.max_contacts_per_source])
        logger.filtered(len(result), len(capped), "per-source cap")

        return sorted(capped, key=contact_sort_key)

    @staticmethod
    def calculate_metrics(
        all_contacts: list[ExtractedContact],
        unique: list[ExtractedContact],
        outcomes: list[SourceOutcome],
        dedup: DuplicateDetectionResult,
        processing_time_ms: int,
    ) -> ExtractionMetrics:
        seconds = processing_time_ms / 1000
        total = len(all_contacts)
        source_scores = [o.content_quality for o in outcomes if o.content_quality is not None]
        return ExtractionMetrics(
            processing_speed=round(total / seconds, 2) if seconds > 0 else 0.0,
            accuracy_estimate=_average([c.confidence_score for c in unique]),
            confidence_distribution=score_distribution([c.confidence_score for c in all_contacts]),
            quality_distribution=score_distribution([c.quality_score for c in all_contacts]),
            source_quality_distribution=score_distribution(source_scores),
            extraction_method_breakdown=method_breakdown(all_contacts),
            validation_results=ValidationResults(
                email_validation_rate=_rate(
                    sum(1 for c in all_contacts if c.email_validation_status == "VALID"), total
                ),
                social_validation_rate=_rate(
                    sum(1 for c in all_contacts if c.social_profiles), total
                ),
                duplicate_detection_rate=dedup.duplicate_rate,
            ),
        )

    def _log_stage(
        self,
        job_id: str,
        stage: str,
        stage_start: float,
        items: int,
        logger: ProgressLogger,
        success: bool = True,
        error: str | None = None,
    ) -> None:
        """Write one performance log; a failing write is only a warning."""
        log = PerformanceLog(
            id=generate_id("log"),
            job_id=job_id,
            stage=stage,
            duration_ms=int((time.perf_counter() - stage_start) * 1000),
            items_processed=items,
            success=success,
            error=error,
        )
        try:
            self.store.log_performance(log)
        except Exception as e:
            logger.warning(f"Failed to log performance for stage {stage}: {e}")

    def get_statistics(self, user_id: str | None = None) -> ExtractionStatistics:
        return compute_statistics(self.store, user_id)


def compute_statistics(store: ContactStore, user_id: str | None = None) -> ExtractionStatistics:
    """Aggregate usage, quality and performance across stored jobs."""
    jobs = store.list_jobs(user_id)
    if not jobs:
        return ExtractionStatistics()

    extraction_ids = {j.extraction_id for j in jobs}
    contacts = [c for c in store.list_contacts() if c.extraction_id in extraction_ids]

    total = len(jobs)
    successful = sum(1 for j in jobs if j.status == "COMPLETED")
    failed = sum(1 for j in jobs if j.status == "FAILED")
    total_contacts = sum(j.contacts_found for j in jobs)
    total_sources = sum(j.total_sources for j in jobs)
    total_time_ms = sum(j.processing_time_ms for j in jobs)
    average_time_ms = total_time_ms / total
    duplicates = sum(j.duplicates_found for j in jobs)
    deduplicated = sum(j.contacts_imported + j.duplicates_found for j in jobs)

    return ExtractionStatistics(
        total_extractions=total,
        successful_extractions=successful,
        failed_extractions=failed,
        total_contacts=total_contacts,
        average_contacts_per_source=round(total_contacts / total_sources, 2)
        if total_sources
        else 0.0,
        average_confidence=_average([c.confidence_score for c in contacts]),
        average_processing_time_ms=round(average_time_ms, 2),
        method_breakdown=method_breakdown(contacts),
        quality_distribution=score_distribution([c.quality_score for c in contacts]),
        validation_stats=ValidationResults(
            email_validation_rate=_rate(
                sum(1 for c in contacts if c.email_validation_status == "VALID"), len(contacts)
            ),
            social_validation_rate=_rate(sum(1 for c in contacts if c.social_profiles), len(contacts)),
            duplicate_detection_rate=_rate(duplicates, deduplicated),
        ),
        performance=PerformanceStats(
            throughput=round(total_contacts / (total_time_ms / 1000), 2) if total_time_ms else 0.0,
            average_latency_ms=round(average_time_ms, 2),
            error_rate=_rate(total - successful, total),
        ),
    )
