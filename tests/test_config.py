import logging

import pytest
from pydantic import ValidationError

from bundle_submit.core.config import AppSettings, get_user_env_file, write_user_env_vars
from bundle_submit.core.domain.enums import BundleType, SubmissionMode
from bundle_submit.core.logging_config import configure_logging


def test_defaults():
    settings = AppSettings()

    assert settings.server_url is None
    assert settings.max_concurrency == 10
    assert settings.max_waiters is None
    assert settings.throttle_backoff_seconds == 3.0
    assert settings.default_mode is SubmissionMode.SPLIT


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("FHIR_SUBMIT_SERVER_URL", "https://fhir.example.com")
    monkeypatch.setenv("FHIR_SUBMIT_MAX_WAITERS", "5")
    monkeypatch.setenv("FHIR_SUBMIT_DEFAULT_MODE", "whole")

    settings = AppSettings()

    assert settings.server_url == "https://fhir.example.com"
    assert settings.max_waiters == 5
    assert settings.default_mode is SubmissionMode.WHOLE


def test_concurrency_is_validated(monkeypatch):
    monkeypatch.setenv("FHIR_SUBMIT_MAX_CONCURRENCY", "0")

    with pytest.raises(ValidationError):
        AppSettings()


def test_user_env_file_is_written_and_read_back():
    path = write_user_env_vars({"FHIR_SUBMIT_SERVER_URL": "https://saved.example.com", "FHIR_SUBMIT_BEARER_TOKEN": None})
    write_user_env_vars({"FHIR_SUBMIT_MAX_CONCURRENCY": "3"})

    assert path == get_user_env_file()
    text = path.read_text(encoding="utf-8")
    assert "FHIR_SUBMIT_SERVER_URL=https://saved.example.com" in text
    assert "BEARER_TOKEN" not in text

    settings = AppSettings(_env_file=path)
    assert settings.server_url == "https://saved.example.com"
    assert settings.max_concurrency == 3


def test_bundle_type_parse():
    assert BundleType.parse("batch") is BundleType.BATCH
    assert BundleType.parse("searchset") is None
    assert BundleType.parse(None) is None


def test_configure_logging_installs_single_handler():
    configure_logging("debug")
    configure_logging("info")

    logger = logging.getLogger("bundle_submit")
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
