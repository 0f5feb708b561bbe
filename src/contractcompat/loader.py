"""
YAML loaders for pre-extracted contract documents.

``SnapshotSetLoader`` reads a whole extraction batch::

    snapshots:
      - service: param-service
        endpoints:
          - method: GET
            path: /scenarios/{id}
            response_body: ScenarioDto
        schemas:
          - qualified_name: ScenarioDto
            fields:
              - {name: name, type: string}
    edges:
      - consumer: reports-service
        provider: param-service
        used_endpoints: ["GET /scenarios/{id}"]
        used_members: [ScenarioDto.name]
    failures:
      billing-service: parser crashed

``YamlSnapshotAdapter`` is an ``ExtractionAdapter`` over one-service
documents (``snapshot`` + ``edges``), so pre-extracted files can go
through ``extract_all()`` like any other front-end.

Usage::

    from contractcompat.loader import SnapshotSetLoader

    batch = SnapshotSetLoader().load(Path("current.yaml"))
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, ClassVar, Generic, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from contractcompat.errors import ExtractionFailure
from contractcompat.extraction import ExtractionOutput, SourceRef
from contractcompat.models import SnapshotSet

logger = logging.getLogger(__name__)

DocT = TypeVar("DocT", bound=BaseModel)


def _parse_mapping(text: str, origin: str) -> dict[str, Any]:
    raw = yaml.safe_load(text)
    if not isinstance(raw, dict):
        raise TypeError(
            f"Expected YAML mapping at root of {origin}, got {type(raw).__name__}"
        )
    return raw


class YamlDocumentLoader(Generic[DocT]):
    """Validates YAML documents into ``document_model``.

    Loaded files are cached per subclass, keyed by resolved path and
    modification time, so an edited file is re-read on the next load.
    """

    document_model: ClassVar[type[BaseModel]]
    _cache: ClassVar[dict[tuple[str, int], BaseModel]] = {}

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        cls._cache = {}

    @classmethod
    def clear_cache(cls) -> None:
        cls._cache.clear()

    def load(self, path: Path) -> DocT:
        """Load and validate a document file.

        Raises:
            FileNotFoundError: If the file does not exist.
            TypeError: If the YAML root is not a mapping.
            yaml.YAMLError: If the file contains invalid YAML.
            pydantic.ValidationError: If the document does not match the model.
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Document not found: {path}")

        key = (str(path.resolve()), path.stat().st_mtime_ns)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("%s cache hit: %s", type(self).__name__, key[0])
            return cached  # type: ignore[return-value]

        document = self.document_model.model_validate(
            _parse_mapping(path.read_text(), str(path))
        )
        self._cache[key] = document
        self.describe(document, key[0])
        return document  # type: ignore[return-value]

    def load_from_string(self, text: str) -> DocT:
        """Validate a document given as YAML text (not cached)."""
        return self.document_model.model_validate(  # type: ignore[return-value]
            _parse_mapping(text, "<string>")
        )

    def describe(self, document: DocT, origin: str) -> None:
        logger.debug("Loaded %s from %s", type(document).__name__, origin)


class SnapshotSetLoader(YamlDocumentLoader[SnapshotSet]):
    """Loads extraction batches."""

    document_model = SnapshotSet

    def describe(self, document: SnapshotSet, origin: str) -> None:
        logger.debug(
            "Loaded snapshot set %s: snapshots=%d, edges=%d, failures=%d",
            origin,
            len(document.snapshots),
            len(document.edges),
            len(document.failures),
        )


class ServiceDocumentLoader(YamlDocumentLoader[ExtractionOutput]):
    """Loads one service's pre-extracted snapshot and edges."""

    document_model = ExtractionOutput


class YamlSnapshotAdapter:
    """Extraction adapter reading pre-extracted per-service YAML documents."""

    def __init__(self, loader: ServiceDocumentLoader | None = None) -> None:
        self._loader = loader or ServiceDocumentLoader()

    def extract(self, service: str, source: SourceRef) -> ExtractionOutput:
        try:
            return self._loader.load(Path(source))
        except (FileNotFoundError, TypeError, yaml.YAMLError, ValidationError) as exc:
            raise ExtractionFailure(service, str(exc)) from exc
