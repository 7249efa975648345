"""
Contactmine email validator - classify and validate contact email addresses.

Checks, in order:
1. Syntax (fail fast, with suggestions)
2. Type: PERSONAL vs ALIAS (department) vs GENERIC (info@, support@, ...)
3. Disposable domains (configurable denylist)
4. Domain / MX existence through a pluggable DnsResolver

Without a resolver the verdict is syntactic only, with reduced confidence.
"""

import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import dns.exception
import dns.resolver

from .models import EmailType

EMAIL_FORMAT_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

DEFAULT_DISPOSABLE_DOMAINS = frozenset(
    {
        "10minutemail.com",
        "tempmail.org",
        "mailinator.com",
        "guerrillamail.com",
        "guerrillamail.info",
        "yopmail.com",
        "maildrop.cc",
        "throwaway.email",
        "mailnesia.org",
        "tempmail.co",
        "tempmail.dev",
        "tempmail.net",
        "tempmail.app",
    }
)

# Role mailboxes nobody owns personally
GENERIC_LOCAL_PARTS = frozenset(
    {
        "info",
        "contact",
        "hello",
        "support",
        "admin",
        "team",
        "sales",
        "marketing",
        "office",
        "help",
        "noreply",
        "no-reply",
        "webmaster",
        "enquiries",
        "inquiries",
    }
)

# Desk addresses that route to a newsroom function
ALIAS_LOCAL_PARTS = frozenset(
    {
        "news",
        "newsdesk",
        "editor",
        "editors",
        "editorial",
        "press",
        "media",
        "tips",
        "letters",
        "desk",
        "pr",
    }
)

PERSONAL_PATTERNS = (
    re.compile(r"^[a-z]+\.[a-z]+$"),  # first.last
    re.compile(r"^[a-z]\.[a-z]+$"),  # f.last
    re.compile(r"^[a-z]+[._-]?[a-z]+[0-9]{0,2}$"),  # firstlast, first_last
)

TEST_LOCAL_REGEX = re.compile(r"test|demo|sample|example", re.I)

COMMON_DOMAIN_TYPOS = {
    "gmial.com": "gmail.com",
    "gmai.com": "gmail.com",
    "gnail.com": "gmail.com",
    "hotmial.com": "hotmail.com",
    "yaho.com": "yahoo.com",
    "outlok.com": "outlook.com",
}


# =============================================================================
# DNS CAPABILITY
# =============================================================================


class DnsResolver(ABC):
    """Abstract domain lookup capability."""

    @abstractmethod
    def mx_records(self, domain: str) -> list[str]:
        """Return MX hosts for a domain (empty if none)."""
        pass

    @abstractmethod
    def domain_exists(self, domain: str) -> bool:
        """Check whether the domain resolves at all."""
        pass


class DnsPythonResolver(DnsResolver):
    """dnspython-backed resolver with a per-query lifetime."""

    def __init__(self, lifetime: float = 5.0):
        self.lifetime = lifetime

    def mx_records(self, domain: str) -> list[str]:
        try:
            answers = dns.resolver.resolve(domain, "MX", lifetime=self.lifetime)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer, dns.resolver.NoNameservers):
            return []
        except dns.exception.Timeout:
            return []
        hosts = sorted(answers, key=lambda r: r.preference)
        return [str(r.exchange).rstrip(".") for r in hosts]

    def domain_exists(self, domain: str) -> bool:
        for record_type in ("MX", "A"):
            try:
                dns.resolver.resolve(domain, record_type, lifetime=self.lifetime)
                return True
            except dns.resolver.NXDOMAIN:
                return False
            except (dns.resolver.NoAnswer, dns.resolver.NoNameservers, dns.exception.Timeout):
                continue
        return False


# =============================================================================
# VALIDATOR
# =============================================================================


@dataclass
class EmailValidatorConfig:
    """Email validator configuration."""

    disposable_domains: frozenset[str] = DEFAULT_DISPOSABLE_DOMAINS
    cache_ttl: float = 1800.0  # 30 minutes
    syntactic_only_confidence: float = 0.6


@dataclass
class EmailValidationOptions:
    """Per-call validation switches."""

    strict_mode: bool = False
    check_domain: bool = True
    check_mx: bool = True


@dataclass
class EmailValidationResult:
    """Verdict for one email address."""

    email: str
    is_valid: bool
    is_disposable: bool = False
    is_temporary: bool = False
    domain_exists: bool | None = None
    mx_records: list[str] = field(default_factory=list)
    spam_score: float = 0.0
    email_type: EmailType = "UNKNOWN"
    confidence: float = 0.0
    reasoning: str = ""
    suggestions: list[str] = field(default_factory=list)


def is_valid_format(email: str) -> bool:
    """Pure syntax check."""
    if not email or not EMAIL_FORMAT_REGEX.match(email):
        return False
    local, _, domain = email.partition("@")
    if ".." in email or local.startswith(".") or local.endswith("."):
        return False
    if domain.startswith(".") or "@." in email:
        return False
    return True


def format_suggestions(email: str) -> list[str]:
    """Hints for fixing a malformed address."""
    suggestions = []
    if "@" not in email:
        suggestions.append("Add an @ between the mailbox and the domain")
        return suggestions
    if email.count("@") > 1:
        suggestions.append("Use a single @ symbol")
    if ".." in email:
        suggestions.append("Remove consecutive dots")
    local, _, domain = email.rpartition("@")
    if local.startswith(".") or local.endswith("."):
        suggestions.append("Remove dots at the start or end of the mailbox name")
    if "." not in domain:
        suggestions.append("Add a top-level domain (e.g. .com)")
    if " " in email:
        suggestions.append("Remove spaces")
    typo_fix = COMMON_DOMAIN_TYPOS.get(domain.lower())
    if typo_fix:
        suggestions.append(f"Did you mean {local}@{typo_fix}?")
    return suggestions


def classify_email(email: str) -> EmailType:
    """PERSONAL, ALIAS (department desk), GENERIC (role mailbox) or UNKNOWN."""
    local = email.split("@")[0].lower()
    base = re.split(r"[+]", local)[0]
    if base in GENERIC_LOCAL_PARTS:
        return "GENERIC"
    if base in ALIAS_LOCAL_PARTS:
        return "ALIAS"
    if any(p.match(base) for p in PERSONAL_PATTERNS):
        return "PERSONAL"
    return "UNKNOWN"


class EmailValidator:
    """Validate addresses with an optional DNS capability and a result cache."""

    def __init__(
        self,
        resolver: DnsResolver | None = None,
        config: EmailValidatorConfig | None = None,
    ):
        self.resolver = resolver
        self.config = config or EmailValidatorConfig()
        self._cache: dict[str, tuple[datetime, EmailValidationResult]] = {}

    def is_disposable_domain(self, domain: str) -> bool:
        domain = domain.lower()
        return any(
            domain == d or domain.endswith("." + d) for d in self.config.disposable_domains
        )

    def validate_email(
        self, email: str, options: EmailValidationOptions | None = None
    ) -> EmailValidationResult:
        """Validate one address; cached per (address, strict mode) for cache_ttl."""
        options = options or EmailValidationOptions()
        email = (email or "").strip()
        cache_key = f"{email.lower()}|{options.strict_mode}|{options.check_domain}|{options.check_mx}"
        cached = self._cache.get(cache_key)
        now = datetime.now(UTC)
        if cached and cached[0] > now:
            return cached[1]

        result = self._validate(email, options)
        self._cache[cache_key] = (now + timedelta(seconds=self.config.cache_ttl), result)
        return result

    def _validate(self, email: str, options: EmailValidationOptions) -> EmailValidationResult:
        reasoning: list[str] = []

        if not is_valid_format(email):
            return EmailValidationResult(
                email=email,
                is_valid=False,
                spam_score=1.0,
                reasoning="Invalid email format",
                suggestions=format_suggestions(email),
            )
        reasoning.append("Valid email format")

        local, _, domain = email.lower().partition("@")
        email_type = classify_email(email)
        is_disposable = self.is_disposable_domain(domain)
        if is_disposable:
            email_type = "DISPOSABLE"
            reasoning.append("Disposable email domain")

        domain_exists: bool | None = None
        mx_records: list[str] = []
        if self.resolver is not None:
            if options.check_domain:
                domain_exists = self.resolver.domain_exists(domain)
                reasoning.append("Domain exists" if domain_exists else "Domain does not exist")
            if options.check_mx and domain_exists is not False:
                mx_records = self.resolver.mx_records(domain)
                reasoning.append(
                    f"Found {len(mx_records)} MX records" if mx_records else "No MX records"
                )
        else:
            reasoning.append("DNS checks unavailable, syntax only")

        spam_score = self._spam_score(local, email_type, is_disposable, domain_exists, mx_records)
        is_temporary = email_type in ("ALIAS", "GENERIC")

        dns_checked = self.resolver is not None
        if options.strict_mode:
            is_valid = (
                not is_disposable
                and spam_score <= 0.7
                and email_type != "UNKNOWN"
                and (not dns_checked or (domain_exists is not False and bool(mx_records)))
            )
        else:
            is_valid = not is_disposable and spam_score <= 0.9 and domain_exists is not False

        if dns_checked:
            confidence = 1.0 - spam_score / 2
        else:
            confidence = self.config.syntactic_only_confidence * (1.0 - spam_score / 2)

        if is_temporary:
            reasoning.append(f"{email_type.title()} mailbox")
        reasoning.append(f"Spam score {spam_score:.2f}")

        return EmailValidationResult(
            email=email,
            is_valid=is_valid,
            is_disposable=is_disposable,
            is_temporary=is_temporary,
            domain_exists=domain_exists,
            mx_records=mx_records,
            spam_score=spam_score,
            email_type=email_type,
            confidence=round(max(0.0, min(confidence, 1.0)), 2),
            reasoning="; ".join(reasoning),
        )

    def _spam_score(
        self,
        local: str,
        email_type: EmailType,
        is_disposable: bool,
        domain_exists: bool | None,
        mx_records: list[str],
    ) -> float:
        score = 0.0
        if email_type in ("GENERIC", "ALIAS"):
            score += 0.4
        if is_disposable:
            score += 0.8
        if domain_exists is False:
            score += 0.6
        if self.resolver is not None and domain_exists is not False and not mx_records:
            score += 0.3
        if TEST_LOCAL_REGEX.search(local):
            score += 0.3
        if len(local) > 20 or len(local) < 3:
            score += 0.2
        return round(min(score, 1.0), 2)

    def validate_multiple_emails(
        self, emails: list[str], options: EmailValidationOptions | None = None
    ) -> dict[str, EmailValidationResult]:
        """Validate a list of addresses (duplicates validated once)."""
        results: dict[str, EmailValidationResult] = {}
        for email in emails:
            if email not in results:
                results[email] = self.validate_email(email, options)
        return results

    def batch_validate_emails(
        self,
        emails: list[str],
        options: EmailValidationOptions | None = None,
        batch_size: int = 10,
        delay: float = 0.1,
    ) -> dict[str, EmailValidationResult]:
        """Validate in batches with a pause between them (be gentle with DNS)."""
        results: dict[str, EmailValidationResult] = {}
        for start in range(0, len(emails), batch_size):
            batch = emails[start : start + batch_size]
            results.update(self.validate_multiple_emails(batch, options))
            if delay > 0 and start + batch_size < len(emails):
                time.sleep(delay)
        return results

    def clear_cache(self) -> None:
        self._cache.clear()
