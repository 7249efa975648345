"""
Contactmine CLI - command line interface.
"""

import sys
from pathlib import Path

import click
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


@click.group()
@click.version_option(version="0.1.0", prog_name="contactmine")
def main() -> None:
    """Contactmine - journalist and expert contacts from web pages"""
    pass


@main.command()
@click.argument("urls", nargs=-1, required=True)
@click.option(
    "--threshold",
    "-t",
    type=click.FloatRange(0.0, 1.0),
    default=0.5,
    help="Minimum confidence score to keep a contact (default: 0.5)",
)
@click.option(
    "--max-contacts",
    "-n",
    type=click.IntRange(min=1),
    default=10,
    help="Maximum contacts kept per source (default: 10)",
)
@click.option("--strict", is_flag=True, help="Strict validation: quality gate, realistic names")
@click.option("--no-cache", is_flag=True, help="Do not reuse cached extractions")
@click.option(
    "--concurrency",
    "-c",
    type=click.IntRange(min=1),
    default=1,
    help="Sources processed in parallel (default: 1)",
)
@click.option(
    "--store",
    "store_dir",
    type=click.Path(file_okay=False),
    default="contactmine-data",
    help="Directory for jobs, contacts and performance logs (default: contactmine-data/)",
)
@click.option(
    "--output", "-o", type=click.Path(dir_okay=False), default=None, help="Write result JSON here"
)
@click.option("--search-id", default="cli", help="Search identifier stamped on contacts")
@click.option("--user", "user_id", default="cli", help="User identifier recorded on the job")
@click.option("--dns", is_flag=True, help="Check email domains and MX records over DNS")
@click.option("--verbose", "-v", is_flag=True, help="Show cache hits and dropped candidates")
def extract(
    urls: tuple[str, ...],
    threshold: float,
    max_contacts: int,
    strict: bool,
    no_cache: bool,
    concurrency: int,
    store_dir: str,
    output: str | None,
    search_id: str,
    user_id: str,
    dns: bool,
    verbose: bool,
) -> None:
    """Extract contacts from one or more URLs."""
    from .cache import CacheConfig, ExtractionCache
    from .email_validator import DnsPythonResolver, EmailValidator
    from .errors import ExtractionError
    from .llm import OpenAITextService
    from .models import ExtractionOptions, ExtractionRequest, Source
    from .parser import ContentParser
    from .pipeline import ExtractionOrchestrator
    from .store import JsonContactStore

    try:
        service = OpenAITextService()
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo("Make sure OPENAI_API_KEY is set in .env", err=True)
        sys.exit(1)

    request = ExtractionRequest(
        search_id=search_id,
        user_id=user_id,
        sources=tuple(Source(url=u) for u in urls),
        options=ExtractionOptions(
            confidence_threshold=threshold,
            max_contacts_per_source=max_contacts,
            strict_validation=strict,
            enable_caching=not no_cache,
            max_concurrent=concurrency,
        ),
    )

    cache = ExtractionCache(CacheConfig(enabled=not no_cache, auto_cleanup=False))
    orchestrator = ExtractionOrchestrator(
        service,
        store=JsonContactStore(Path(store_dir)),
        cache=cache,
        parser=ContentParser(),
        email_validator=EmailValidator(resolver=DnsPythonResolver() if dns else None),
        verbose=verbose,
    )
    try:
        result = orchestrator.submit_extraction(request)
    except ExtractionError as e:
        click.echo(f"Extraction error: {e}", err=True)
        sys.exit(1)
    finally:
        orchestrator.close()
        cache.destroy()

    click.echo(f"\nStatus: {result.status}")
    click.echo(f"Sources processed: {result.sources_processed}/{len(urls)}")
    click.echo(f"Contacts: {result.contacts_imported} imported of {result.contacts_found} found")
    for contact in result.contacts:
        parts = [contact.name]
        if contact.title:
            parts.append(contact.title)
        if contact.email:
            parts.append(contact.email)
        click.echo(f"  - {' | '.join(parts)} (confidence {contact.confidence_score:.2f})")
    if result.errors:
        click.echo(f"Warnings: {len(result.errors)}")
        for err in result.errors[:5]:
            click.echo(f"  - {err}")

    if output:
        path = Path(output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(result.model_dump_json(indent=2), encoding="utf-8")
        click.echo(f"Result written to {path}")


@main.command()
@click.option(
    "--store",
    "store_dir",
    type=click.Path(file_okay=False),
    default="contactmine-data",
    help="Directory written by 'extract' (default: contactmine-data/)",
)
@click.option("--user", "user_id", default=None, help="Only jobs submitted by this user")
def stats(store_dir: str, user_id: str | None) -> None:
    """Show extraction statistics."""
    from .pipeline import compute_statistics
    from .store import JsonContactStore

    statistics = compute_statistics(JsonContactStore(Path(store_dir)), user_id)
    if statistics.total_extractions == 0:
        click.echo("No extractions recorded.")
        return

    click.echo(
        f"Extractions: {statistics.total_extractions} "
        f"({statistics.successful_extractions} completed, {statistics.failed_extractions} failed)"
    )
    click.echo(f"Contacts found: {statistics.total_contacts}")
    click.echo(f"Contacts per source: {statistics.average_contacts_per_source:.2f}")
    click.echo(f"Average confidence: {statistics.average_confidence:.2f}")
    click.echo(f"Average processing time: {statistics.average_processing_time_ms:.0f}ms")
    q = statistics.quality_distribution
    click.echo(f"Quality: high={q.high} medium={q.medium} low={q.low}")
    v = statistics.validation_stats
    click.echo(
        f"Validation: email={v.email_validation_rate:.0%} social={v.social_validation_rate:.0%} "
        f"duplicates={v.duplicate_detection_rate:.0%}"
    )
    p = statistics.performance
    click.echo(
        f"Performance: {p.throughput:.2f} contacts/s, {p.average_latency_ms:.0f}ms latency, "
        f"{p.error_rate:.0%} errors"
    )


@main.command("validate-email")
@click.argument("address")
@click.option("--strict", is_flag=True, help="Use strict validation rules")
@click.option("--dns", is_flag=True, help="Check the domain and MX records over DNS")
def validate_email(address: str, strict: bool, dns: bool) -> None:
    """Validate and classify an email address."""
    from .email_validator import DnsPythonResolver, EmailValidationOptions, EmailValidator

    validator = EmailValidator(resolver=DnsPythonResolver() if dns else None)
    result = validator.validate_email(address, EmailValidationOptions(strict_mode=strict))

    click.echo(f"{result.email}: {'VALID' if result.is_valid else 'INVALID'}")
    click.echo(f"  Type: {result.email_type}")
    click.echo(f"  Disposable: {'yes' if result.is_disposable else 'no'}")
    click.echo(f"  Spam score: {result.spam_score:.2f}")
    click.echo(f"  Confidence: {result.confidence:.2f}")
    if result.mx_records:
        click.echo(f"  MX: {', '.join(result.mx_records)}")
    if result.reasoning:
        click.echo(f"  Reasoning: {result.reasoning}")
    for suggestion in result.suggestions:
        click.echo(f"  Suggestion: {suggestion}")
    if not result.is_valid:
        sys.exit(1)


@main.command("detect-social")
@click.argument("text")
def detect_social(text: str) -> None:
    """List social profiles mentioned in TEXT."""
    from .social import SocialProfileDetector

    detector = SocialProfileDetector()
    profiles = detector.detect_social_profiles(text)
    if not profiles:
        click.echo("No social profiles found.")
        return

    for profile in profiles:
        validation = detector.validate_profile(profile)
        status = "ok" if validation.is_valid else "suspicious"
        click.echo(f"{profile.platform}: @{profile.handle} -> {profile.url} [{status}]")
        for indicator in validation.indicators:
            click.echo(f"  - {indicator}")


if __name__ == "__main__":
    main()
