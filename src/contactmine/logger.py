"""
Contactmine structured logging - operator-grade telemetry for extraction jobs.

Answers three questions:
1. Is it alive or stuck?
2. What phase is it in?
3. Which source is it on?
"""

import sys
from datetime import UTC, datetime

# Force line buffering for immediate output
try:
    sys.stdout.reconfigure(line_buffering=True)  # type: ignore
except Exception:
    pass  # Fallback for non-reconfigurable streams


def _print(*args: object, **kwargs: object) -> None:
    """Print with immediate flush."""
    print(*args, **kwargs, flush=True)


def _eprint(*args: object, **kwargs: object) -> None:
    """Print to stderr with immediate flush."""
    print(*args, **kwargs, file=sys.stderr, flush=True)


class ProgressLogger:
    """
    Structured progress logger for extraction jobs.

    One line per phase and per source; details such as cache hits and
    dropped candidates only show up in verbose mode.
    """

    def __init__(self, job_id: str, verbose: bool = False, quiet: bool = False):
        self.job_id = job_id
        self.verbose = verbose
        self.quiet = quiet
        self.start_time = datetime.now(UTC)
        self.last_heartbeat = self.start_time
        self.phase_times: dict[str, datetime] = {}

    def phase(self, name: str, detail: str = "") -> None:
        """Log a major phase transition."""
        now = datetime.now(UTC)
        self.phase_times[name] = now
        if self.quiet:
            return
        elapsed = (now - self.start_time).total_seconds()

        if detail:
            _print(f"[Phase] {name}: {detail} ({elapsed:.1f}s)")
        else:
            _print(f"[Phase] {name} ({elapsed:.1f}s)")

    def progress(
        self,
        item: str,
        current: int,
        total: int,
        detail: str = "",
    ) -> None:
        """Log a progress update (e.g., source 3/12)."""
        if self.quiet:
            return
        pct = (current / total * 100) if total > 0 else 0
        if detail:
            _print(f"  [{item} {current}/{total}] {detail} ({pct:.0f}%)")
        else:
            _print(f"  [{item} {current}/{total}] ({pct:.0f}%)")

    def source(self, url: str, contacts: int, from_cache: bool = False) -> None:
        """Log the outcome of one source."""
        if self.quiet:
            return
        origin = " (cache)" if from_cache else ""
        truncated = url[:70] + "..." if len(url) > 70 else url
        _print(f"    [Source] {truncated} -> {contacts} contacts{origin}")

    def cache(self, url: str, hit: bool) -> None:
        """Log a cache lookup (verbose only)."""
        if self.verbose and not self.quiet:
            status = "hit" if hit else "miss"
            _print(f"    [Cache] {status}: {url[:60]}")

    def filtered(self, before: int, after: int, reason: str) -> None:
        """Log a filtering step."""
        if self.quiet or before == after:
            return
        _print(f"  [Filtered] {before} -> {after} contacts ({reason})")

    def deduped(self, before: int, after: int, groups: int) -> None:
        """Log deduplication results."""
        if self.quiet:
            return
        _print(f"  [Deduped] {before} -> {after} contacts ({groups} groups)")

    def skip(self, reason: str, detail: str) -> None:
        """Log a skip/drop with reason (verbose only)."""
        if self.verbose and not self.quiet:
            _print(f"    [Skip] {reason}: {detail[:60]}...")

    def heartbeat(self, activity: str = "Working") -> None:
        """
        Emit a heartbeat if nothing has happened recently.
        Call this periodically during long waits.
        """
        now = datetime.now(UTC)
        elapsed_since_last = (now - self.last_heartbeat).total_seconds()

        if elapsed_since_last >= 30:  # Heartbeat every 30s
            total_elapsed = (now - self.start_time).total_seconds()
            if not self.quiet:
                _print(f"  [Heartbeat] {activity}... ({total_elapsed:.0f}s elapsed)")
            self.last_heartbeat = now

    def finish(self, status: str, contacts: int, errors: int = 0) -> None:
        """Log job completion."""
        if self.quiet:
            return
        elapsed = (datetime.now(UTC) - self.start_time).total_seconds()
        minutes = int(elapsed // 60)
        seconds = int(elapsed % 60)

        _print(f"\n[Contactmine] Job {self.job_id} {status} in {minutes}m{seconds}s")
        _print(f"  Contacts: {contacts}")
        if errors:
            _print(f"  Source errors: {errors}")

    def error(self, msg: str) -> None:
        """Log an error."""
        _eprint(f"[Error] {msg}")

    def warning(self, msg: str) -> None:
        """Log a warning."""
        _eprint(f"[Warning] {msg}")
