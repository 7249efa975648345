"""
Contactmine store - persistence for jobs, contacts and per-stage performance logs.

The orchestrator writes one job record (updated through status transitions),
one record per unique contact, and one performance log per pipeline stage.
Contacts are never deleted by the pipeline.
"""

import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from .models import ExtractedContact, ExtractionJob, PerformanceLog


class ContactStore(ABC):
    """Abstract persistence backend."""

    @abstractmethod
    def create_job(self, job: ExtractionJob) -> None:
        pass

    @abstractmethod
    def update_job(self, job: ExtractionJob) -> None:
        pass

    @abstractmethod
    def get_job(self, job_id: str) -> ExtractionJob | None:
        pass

    @abstractmethod
    def list_jobs(self, user_id: str | None = None) -> list[ExtractionJob]:
        pass

    @abstractmethod
    def save_contacts(self, contacts: list[ExtractedContact]) -> int:
        """Persist contacts; returns how many were written."""
        pass

    @abstractmethod
    def list_contacts(self, extraction_id: str | None = None) -> list[ExtractedContact]:
        pass

    @abstractmethod
    def log_performance(self, log: PerformanceLog) -> None:
        pass

    @abstractmethod
    def list_performance_logs(self, job_id: str | None = None) -> list[PerformanceLog]:
        pass


class InMemoryContactStore(ContactStore):
    """Dict-backed store; the default for tests and one-off runs."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.jobs: dict[str, ExtractionJob] = {}
        self.contacts: dict[str, ExtractedContact] = {}
        self.performance_logs: list[PerformanceLog] = []

    def create_job(self, job: ExtractionJob) -> None:
        with self._lock:
            self.jobs[job.id] = job.model_copy(deep=True)

    def update_job(self, job: ExtractionJob) -> None:
        with self._lock:
            if job.id not in self.jobs:
                raise KeyError(f"Unknown job: {job.id}")
            self.jobs[job.id] = job.model_copy(deep=True)

    def get_job(self, job_id: str) -> ExtractionJob | None:
        job = self.jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    def list_jobs(self, user_id: str | None = None) -> list[ExtractionJob]:
        with self._lock:
            jobs = [j for j in self.jobs.values() if user_id is None or j.user_id == user_id]
        return sorted(jobs, key=lambda j: j.created_at)

    def save_contacts(self, contacts: list[ExtractedContact]) -> int:
        with self._lock:
            for contact in contacts:
                self.contacts[contact.id] = contact.model_copy(deep=True)
        return len(contacts)

    def list_contacts(self, extraction_id: str | None = None) -> list[ExtractedContact]:
        with self._lock:
            return [
                c
                for c in self.contacts.values()
                if extraction_id is None or c.extraction_id == extraction_id
            ]

    def log_performance(self, log: PerformanceLog) -> None:
        with self._lock:
            self.performance_logs.append(log)

    def list_performance_logs(self, job_id: str | None = None) -> list[PerformanceLog]:
        with self._lock:
            return [p for p in self.performance_logs if job_id is None or p.job_id == job_id]


class JsonContactStore(InMemoryContactStore):
    """
    In-memory store mirrored to JSON files in a directory.

    Layout: jobs.json, contacts.json, performance.json. Each write rewrites
    the affected file; suitable for CLI runs, not concurrent processes.
    """

    def __init__(self, directory: Path):
        super().__init__()
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._io_lock = threading.Lock()
        self._load()

    def _path(self, name: str) -> Path:
        return self.directory / f"{name}.json"

    def _read(self, name: str) -> list[dict]:
        path = self._path(name)
        if not path.exists():
            return []
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    def _write(self, name: str, records: list) -> None:
        data = [r.model_dump(mode="json") for r in records]
        with self._io_lock:
            tmp = self._path(name).with_suffix(".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, default=str)
            tmp.replace(self._path(name))

    def _load(self) -> None:
        for data in self._read("jobs"):
            job = ExtractionJob.model_validate(data)
            self.jobs[job.id] = job
        for data in self._read("contacts"):
            contact = ExtractedContact.model_validate(data)
            self.contacts[contact.id] = contact
        self.performance_logs = [PerformanceLog.model_validate(d) for d in self._read("performance")]

    def create_job(self, job: ExtractionJob) -> None:
        super().create_job(job)
        self._write("jobs", list(self.jobs.values()))

    def update_job(self, job: ExtractionJob) -> None:
        super().update_job(job)
        self._write("jobs", list(self.jobs.values()))

    def save_contacts(self, contacts: list[ExtractedContact]) -> int:
        saved = super().save_contacts(contacts)
        self._write("contacts", list(self.contacts.values()))
        return saved

    def log_performance(self, log: PerformanceLog) -> None:
        super().log_performance(log)
        self._write("performance", list(self.performance_logs))
