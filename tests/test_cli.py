import json

import httpx
import pytest

from bundle_submit.adapters.fhir_transport import build_transport
from bundle_submit.cli.main import app
from bundle_submit.core.services import bundle_pipeline
from stubs import bundle_document, observation, patient


@pytest.fixture
def fake_server(monkeypatch):
    """Routes every transport built by the pipeline to an in-memory FHIR server."""
    requests: list[httpx.Request] = []
    throttle_once: set[str] = set()

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path
        if path in throttle_once:
            throttle_once.discard(path)
            return httpx.Response(429)
        if path.endswith("/Patient/bad"):
            return httpx.Response(
                400,
                json={"resourceType": "OperationOutcome", "issue": [{"diagnostics": "bad patient"}]},
            )
        body = json.loads(request.content) if request.content else {}
        return httpx.Response(200, json=body)

    def fake_build(settings, *, server_url=None, bearer_token=None):
        return build_transport(
            settings,
            server_url=server_url,
            bearer_token=bearer_token,
            transport=httpx.MockTransport(handler),
        )

    monkeypatch.setattr(bundle_pipeline, "build_transport", fake_build)
    fake_build.requests = requests
    fake_build.throttle_once = throttle_once
    return fake_build


def test_submit_without_bundle_is_usage_error(runner):
    result = runner.invoke(app, ["submit", "-s", "https://fhir.example.com"])

    assert result.exit_code == 0
    assert "No bundle path or directory specified." in result.output


def test_submit_with_file_and_directory_is_usage_error(runner, write_bundle, tmp_path, fake_server, example_document):
    path = write_bundle(example_document)

    result = runner.invoke(app, ["submit", "-p", str(path), "-d", str(tmp_path), "-s", "https://fhir.example.com"])

    assert result.exit_code == 0
    assert "not both" in result.output
    assert fake_server.requests == []


def test_submit_requires_absolute_server_url(runner, write_bundle, fake_server, example_document):
    path = write_bundle(example_document)

    result = runner.invoke(app, ["submit", "-p", str(path), "-s", "fhir.example.com"])

    assert result.exit_code == 0
    assert "does not appear to be a valid URL" in result.output
    assert fake_server.requests == []


def test_submit_missing_file_is_usage_error(runner, tmp_path):
    result = runner.invoke(app, ["submit", "-p", str(tmp_path / "nope.json"), "-s", "https://fhir.example.com"])

    assert result.exit_code == 0
    assert "Unable to access bundle file" in result.output


def test_submit_split_mode_end_to_end(runner, write_bundle, fake_server, example_document):
    path = write_bundle(example_document)
    fake_server.throttle_once.add("/Observation/o1")

    result = runner.invoke(
        app,
        ["submit", "-p", str(path), "-s", "https://fhir.example.com", "-t", "tok", "--throttle-backoff", "0"],
    )

    assert result.exit_code == 0, result.output
    assert "Starting upload: PUT Patient" in result.output
    assert "Finished uploading: Patient" in result.output
    assert "Finished uploading: Observation" in result.output
    puts = [r for r in fake_server.requests if r.method == "PUT"]
    assert sorted(r.url.path for r in puts) == ["/Observation/o1", "/Observation/o1", "/Patient/p1"]
    assert all(r.headers["Authorization"] == "Bearer tok" for r in puts)
    bodies = [json.loads(r.content) for r in puts if r.url.path == "/Observation/o1"]
    assert bodies[-1]["subject"]["reference"] == "Patient/p1"


def test_submit_reports_failures_but_exits_zero(runner, write_bundle, fake_server):
    document = bundle_document([("urn:uuid:1", patient("good")), ("urn:uuid:2", patient("bad"))])
    path = write_bundle(document)

    result = runner.invoke(app, ["submit", "-p", str(path), "-s", "https://fhir.example.com"])

    assert result.exit_code == 0
    assert "Error uploading Patient/bad" in result.output
    assert "bad patient" in result.output


def test_submit_whole_mode_posts_bundle(runner, write_bundle, fake_server, example_document):
    path = write_bundle(example_document)

    result = runner.invoke(app, ["submit", "-p", str(path), "-s", "https://fhir.example.com", "--mode", "whole"])

    assert result.exit_code == 0, result.output
    assert [r.method for r in fake_server.requests] == ["POST"]
    sent = json.loads(fake_server.requests[0].content)
    assert sent["entry"][1]["resource"]["subject"]["reference"] == "urn:uuid:1"


def test_submit_parse_failure_exits_minus_one(runner, write_bundle, fake_server):
    path = write_bundle("{oops")

    result = runner.invoke(app, ["submit", "-p", str(path), "-s", "https://fhir.example.com"])

    assert result.exit_code == -1
    assert "Unable to parse bundle" in result.output


def test_submit_directory_uses_last_file_code(runner, tmp_path, write_bundle, fake_server, example_document):
    folder = tmp_path / "in"
    write_bundle(example_document, name="1.json", directory=folder)
    write_bundle("{oops", name="2.json", directory=folder)

    result = runner.invoke(app, ["submit", "-d", str(folder), "-s", "https://fhir.example.com"])

    assert result.exit_code == -1
    assert "Finished uploading: Patient" in result.output


def test_resolve_writes_resolved_bundle(runner, write_bundle, tmp_path, example_document):
    path = write_bundle(example_document)
    output = tmp_path / "out" / "resolved.json"

    result = runner.invoke(app, ["resolve", str(path), "-o", str(output)])

    assert result.exit_code == 0, result.output
    resolved = json.loads(output.read_text(encoding="utf-8"))
    assert resolved["entry"][1]["resource"]["subject"]["reference"] == "Patient/p1"
    assert "Rewrote 1 reference(s)" in result.output


def test_resolve_duplicate_identifier_exits_minus_one(runner, write_bundle):
    document = bundle_document([("urn:uuid:1", patient("p1")), ("urn:uuid:1", patient("p2"))])

    result = runner.invoke(app, ["resolve", str(write_bundle(document))])

    assert result.exit_code == -1
    assert "Duplicate fullUrl" in result.output


def test_doctor_without_server_only_shows_configuration(runner):
    result = runner.invoke(app, ["doctor", "run"])

    assert result.exit_code == 0, result.output
    assert "MISSING" in result.output
    assert "single retry" in result.output


def test_doctor_reads_capability_statement(runner, monkeypatch):
    from bundle_submit.cli import doctor

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/fhir/metadata"
        return httpx.Response(
            200,
            json={"resourceType": "CapabilityStatement", "fhirVersion": "4.0.1", "software": {"name": "HAPI"}},
        )

    def fake_build(settings, *, server_url=None, bearer_token=None):
        return build_transport(settings, server_url=server_url, transport=httpx.MockTransport(handler))

    monkeypatch.setattr(doctor, "build_transport", fake_build)

    result = runner.invoke(app, ["doctor", "run", "-s", "https://fhir.example.com/fhir"])

    assert result.exit_code == 0, result.output
    assert "HAPI (4.0.1)" in result.output


def test_unresolved_reference_is_reported_once(runner, write_bundle, fake_server):
    document = bundle_document([("urn:uuid:2", observation("o1", "urn:uuid:nowhere"))])
    path = write_bundle(document)

    result = runner.invoke(app, ["submit", "-p", str(path), "-s", "https://fhir.example.com"])

    assert result.exit_code == 0, result.output
    assert result.output.count("urn:uuid:nowhere") == 1
