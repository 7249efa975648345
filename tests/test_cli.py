"""Tests for the Contactmine CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner
from conftest import ARTICLE_HTML, ARTICLE_URL, JANE_DOE_RESPONSE, html_transport

from contactmine.cli import main
from contactmine.llm import MockTextService
from contactmine.parser import ContentParser, ParserConfig


@pytest.fixture
def offline(monkeypatch: pytest.MonkeyPatch) -> None:
    """Swap the model and HTTP layers for in-memory fakes."""
    monkeypatch.setattr(
        "contactmine.llm.OpenAITextService", lambda: MockTextService(JANE_DOE_RESPONSE)
    )
    monkeypatch.setattr(
        "contactmine.parser.ContentParser",
        lambda: ContentParser(
            ParserConfig(transport=html_transport({ARTICLE_URL: ARTICLE_HTML}), retry_backoff=0)
        ),
    )


def test_extract_without_api_key(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """A missing API key stops the run with a hint."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    result = CliRunner().invoke(main, ["extract", ARTICLE_URL, "--store", str(tmp_path)])
    assert result.exit_code == 1
    assert "OPENAI_API_KEY" in result.output


def test_extract_writes_result(offline: None, tmp_path: Path) -> None:
    """An offline run reports the contact and writes the result file."""
    output = tmp_path / "out" / "result.json"
    result = CliRunner().invoke(
        main,
        [
            "extract",
            ARTICLE_URL,
            "--threshold",
            "0.3",
            "--store",
            str(tmp_path / "data"),
            "--output",
            str(output),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Status: COMPLETED" in result.output
    assert "Jane Doe" in result.output
    data = json.loads(output.read_text(encoding="utf-8"))
    assert data["status"] == "COMPLETED"
    assert data["contacts_imported"] == 1
    assert (tmp_path / "data" / "contacts.json").exists()


def test_stats_after_extract(offline: None, tmp_path: Path) -> None:
    """Stats read back what extract stored."""
    runner = CliRunner()
    store = str(tmp_path / "data")
    runner.invoke(main, ["extract", ARTICLE_URL, "-t", "0.3", "--store", store])

    result = runner.invoke(main, ["stats", "--store", store])
    assert result.exit_code == 0
    assert "Extractions: 1 (1 completed, 0 failed)" in result.output


def test_stats_empty_store(tmp_path: Path) -> None:
    """An empty store says so."""
    result = CliRunner().invoke(main, ["stats", "--store", str(tmp_path)])
    assert result.exit_code == 0
    assert "No extractions recorded." in result.output


def test_validate_email_valid() -> None:
    """A personal address is valid."""
    result = CliRunner().invoke(main, ["validate-email", "jane.doe@outlet.com"])
    assert result.exit_code == 0
    assert "jane.doe@outlet.com: VALID" in result.output
    assert "Type: PERSONAL" in result.output


def test_validate_email_invalid() -> None:
    """A disposable address exits non-zero."""
    result = CliRunner().invoke(main, ["validate-email", "jane@mailinator.com"])
    assert result.exit_code == 1
    assert "INVALID" in result.output


def test_detect_social() -> None:
    """Profiles are listed with their URLs."""
    result = CliRunner().invoke(main, ["detect-social", "Follow @janedoe for updates"])
    assert result.exit_code == 0
    assert "twitter: @janedoe -> https://twitter.com/janedoe [ok]" in result.output


def test_detect_social_none() -> None:
    """Text without profiles says so."""
    result = CliRunner().invoke(main, ["detect-social", "No handles here"])
    assert result.exit_code == 0
    assert "No social profiles found." in result.output
