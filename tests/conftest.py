import json
import os
from pathlib import Path

import pytest
from typer.testing import CliRunner

from stubs import bundle_document, observation, patient

# Wide, stable console so Rich does not wrap asserted lines.
os.environ.setdefault("COLUMNS", "200")


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep developer .env files and FHIR_SUBMIT_* variables out of the tests."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in ("SERVER_URL", "BEARER_TOKEN", "MAX_CONCURRENCY", "MAX_WAITERS", "DEFAULT_MODE"):
        monkeypatch.delenv(f"FHIR_SUBMIT_{name}", raising=False)


@pytest.fixture
def example_document():
    """Patient + Observation pointing at the patient by fullUrl."""
    return bundle_document(
        [
            ("urn:uuid:1", patient("p1")),
            ("urn:uuid:2", observation("o1", "urn:uuid:1")),
        ]
    )


@pytest.fixture
def write_bundle(tmp_path: Path):
    """Writes a bundle document (dict or raw text) to a .json file."""

    def _write(document, name: str = "bundle.json", directory: Path | None = None) -> Path:
        target_dir = directory or tmp_path
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / name
        text = document if isinstance(document, str) else json.dumps(document)
        path.write_text(text, encoding="utf-8")
        return path

    return _write
