"""Tests for the extraction adapter interface and extract_all()."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from contractcompat.errors import ExtractionFailure
from contractcompat.extraction import ExtractionAdapter, ExtractionOutput, extract_all
from contractcompat.loader import ServiceDocumentLoader, YamlSnapshotAdapter
from contractcompat.models import ConsumerEdge, ContractSnapshot


class _DictAdapter:
    """Adapter backed by an in-memory mapping of service -> output or exception."""

    def __init__(self, outputs: dict):
        self._outputs = outputs

    def extract(self, service, source):
        outcome = self._outputs[service]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _make_output(service: str, *providers: str) -> ExtractionOutput:
    return ExtractionOutput(
        snapshot=ContractSnapshot(service=service),
        edges=tuple(ConsumerEdge(consumer=service, provider=p) for p in providers),
    )


@pytest.fixture(autouse=True)
def clear_cache():
    ServiceDocumentLoader.clear_cache()
    yield
    ServiceDocumentLoader.clear_cache()


class TestExtractAll:
    def test_adapter_protocol(self):
        assert isinstance(_DictAdapter({}), ExtractionAdapter)
        assert isinstance(YamlSnapshotAdapter(), ExtractionAdapter)

    def test_collects_sorted_snapshots_and_edges(self):
        adapter = _DictAdapter({
            "web": _make_output("web", "api"),
            "api": _make_output("api", "core"),
            "core": _make_output("core"),
        })
        batch = extract_all(adapter, {"web": "w", "api": "a", "core": "c"}, max_workers=3)
        assert [s.service for s in batch.snapshots] == ["api", "core", "web"]
        assert [e.key for e in batch.edges] == [("api", "core"), ("web", "api")]
        assert batch.failures == {}

    def test_failure_recorded_without_aborting(self):
        adapter = _DictAdapter({
            "api": _make_output("api"),
            "billing": ExtractionFailure("billing", "unsupported framework"),
            "crashy": RuntimeError("boom"),
        })
        batch = extract_all(adapter, {"api": ".", "billing": ".", "crashy": "."})
        assert [s.service for s in batch.snapshots] == ["api"]
        assert batch.failures["billing"] == "unsupported framework"
        assert batch.failures["crashy"] == "RuntimeError: boom"
        assert list(batch.failures) == ["billing", "crashy"]

    def test_mismatched_service_is_failure(self):
        adapter = _DictAdapter({"api": _make_output("other")})
        batch = extract_all(adapter, {"api": "."})
        assert batch.snapshots == ()
        assert "other" in batch.failures["api"]

    def test_edges_for_other_consumer_is_failure(self):
        output = ExtractionOutput(
            snapshot=ContractSnapshot(service="api"),
            edges=(ConsumerEdge(consumer="web", provider="api"),),
        )
        batch = extract_all(_DictAdapter({"api": output}), {"api": "."})
        assert "web" in batch.failures["api"]


class TestYamlSnapshotAdapter:
    def test_reads_service_document(self, tmp_path: Path):
        doc = tmp_path / "reports.yaml"
        doc.write_text(textwrap.dedent("""\
            snapshot:
              service: reports-service
              endpoints:
                - method: get
                  path: /reports/{id}
            edges:
              - consumer: reports-service
                provider: param-service
                used_schemas: [ScenarioDto]
        """))
        batch = extract_all(YamlSnapshotAdapter(), {"reports-service": doc})
        assert batch.failures == {}
        assert batch.snapshots[0].endpoints[0].endpoint_id == "GET /reports/{id}"
        assert batch.edges[0].provider == "param-service"

    def test_missing_file_is_extraction_failure(self, tmp_path: Path):
        with pytest.raises(ExtractionFailure) as exc_info:
            YamlSnapshotAdapter().extract("api", tmp_path / "missing.yaml")
        assert exc_info.value.service == "api"

    def test_invalid_document_is_extraction_failure(self, tmp_path: Path):
        doc = tmp_path / "bad.yaml"
        doc.write_text("snapshot:\n  service: api\n  bogus: 1\n")
        batch = extract_all(YamlSnapshotAdapter(), {"api": doc})
        assert "api" in batch.failures
