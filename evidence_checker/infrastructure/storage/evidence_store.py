"""Filesystem evidence store: one directory per captured source."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from cachetools import TTLCache

from ...domain.models.evidence import (
    DerivedArtifact,
    EvidenceFile,
    EvidenceRecord,
    SOURCE_ID_PATTERN,
    TEXT_ARTIFACT_KIND,
    validate_source_id,
)
from ...domain.services.signature import SIGNATURE_VERSION, compute_signature, hash_bytes
from ...domain.services.text_extraction import HTML_SUFFIXES, extract_text
from .json_files import read_json, write_json

logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"
TEXT_CACHE_FILE = "content.md"


def _capture_time() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


class FileEvidenceStore:
    """Creates evidence records exactly once and reads them back.

    Layout: ``<case>/evidence/<source_id>/metadata.json`` next to the payload
    files and any derived artifacts.
    """

    def __init__(
        self,
        case_dir: Path,
        secret: str,
        cache_ttl: int = 600,
        cache_maxsize: int = 256,
    ):
        """Initialize the store.

        Args:
            case_dir: Case directory
            secret: Capture secret used to sign new records
            cache_ttl: Seconds extracted text stays cached
            cache_maxsize: Maximum number of cached texts
        """
        self._root = Path(case_dir) / "evidence"
        self._secret = secret
        self._text_cache = TTLCache(maxsize=cache_maxsize, ttl=cache_ttl)

    @property
    def root(self) -> Path:
        return self._root

    def evidence_dir(self, source_id: str) -> Path:
        return self._root / validate_source_id(source_id)

    def list_ids(self) -> List[str]:
        """Source ids with an evidence directory, sorted."""
        if not self._root.is_dir():
            return []
        return sorted(
            p.name for p in self._root.iterdir()
            if p.is_dir() and SOURCE_ID_PATTERN.match(p.name)
        )

    def load(self, source_id: str) -> Optional[EvidenceRecord]:
        """Load a record.

        Returns:
            The record, or None when the directory or metadata is missing

        Raises:
            ValueError: If the metadata exists but cannot be parsed
        """
        data = read_json(self.evidence_dir(source_id) / METADATA_FILE)
        if data is None:
            return None
        if not isinstance(data, dict):
            raise ValueError(f"{METADATA_FILE} of {source_id} is not an object")
        return EvidenceRecord.from_metadata(source_id, data)

    def read_file(self, source_id: str, relative_path: str) -> Optional[bytes]:
        """Bytes of a file inside the source's evidence directory.

        Paths escaping the directory read as missing.
        """
        base = self.evidence_dir(source_id).resolve()
        path = (base / relative_path).resolve()
        if base not in path.parents or not path.is_file():
            return None
        return path.read_bytes()

    def load_text(self, record: EvidenceRecord) -> str:
        """Extracted text: the text cache when present, else extracted from the payload."""
        key = (record.source_id, record.evidence_hash)
        if key in self._text_cache:
            return self._text_cache[key]

        text = None
        artifact = record.text_artifact
        if artifact is not None:
            data = self.read_file(record.source_id, artifact.path)
            if data is not None:
                text = data.decode("utf-8", errors="replace").strip()
        if text is None:
            parts = []
            for name, info in sorted(record.files.items()):
                data = self.read_file(record.source_id, info.path)
                if data is not None:
                    parts.append(extract_text(data, info.path))
            text = "\n".join(parts)

        self._text_cache[key] = text
        return text

    def create(
        self,
        source_id: str,
        url: str,
        files: Dict[str, bytes],
        title: str = "",
        capture_method: str = "manual",
        captured_at: Optional[str] = None,
        source_type: Optional[str] = None,
        cache_text: bool = True,
    ) -> EvidenceRecord:
        """Write a new evidence record and sign it.

        Args:
            source_id: Allocated source id
            url: Origin URL
            files: Payload file name -> bytes
            title: Page title
            capture_method: Capture tool name
            captured_at: Capture time, defaults to now
            source_type: Self-declared type, if any
            cache_text: Also write the extracted text as a derived artifact

        Returns:
            The signed record

        Raises:
            ValueError: If the record already exists or no payload is given
        """
        directory = self.evidence_dir(source_id)
        if directory.exists():
            raise ValueError(f"Evidence for '{source_id}' already exists")
        if not files:
            raise ValueError("At least one payload file is required")
        directory.mkdir(parents=True)

        recorded: Dict[str, EvidenceFile] = {}
        for file_name, data in sorted(files.items()):
            (directory / file_name).write_bytes(data)
            key = file_name.replace(".", "_")
            recorded[key] = EvidenceFile(path=file_name, hash=hash_bytes(data), size=len(data))

        captured_at = captured_at or _capture_time()
        signature = compute_signature(
            source_id, url, captured_at, [f.hash for f in recorded.values()], self._secret
        )

        derived: Dict[str, DerivedArtifact] = {}
        if cache_text:
            origin_key, origin = self._text_origin(recorded)
            if origin is not None and origin.path != TEXT_CACHE_FILE:
                text = extract_text(files[origin.path], origin.path)
                data = text.encode("utf-8")
                (directory / TEXT_CACHE_FILE).write_bytes(data)
                derived["content"] = DerivedArtifact(
                    path=TEXT_CACHE_FILE,
                    hash=hash_bytes(data),
                    derived_from=origin_key,
                    kind=TEXT_ARTIFACT_KIND,
                )

        record = EvidenceRecord(
            source_id=source_id,
            url=url,
            title=title,
            captured_at=captured_at,
            capture_method=capture_method,
            source_type=source_type,
            files=recorded,
            derived=derived,
            signature=signature,
            signature_version=SIGNATURE_VERSION,
        )
        write_json(directory / METADATA_FILE, record.to_metadata())
        logger.info(f"✅ Captured {source_id} ({len(recorded)} file(s)) from {url}")
        return record

    def append_derived(
        self,
        source_id: str,
        name: str,
        relative_path: str,
        data: bytes,
        derived_from: str,
    ) -> EvidenceRecord:
        """Add a derived artifact. Payload files and the signature stay untouched.

        Raises:
            ValueError: If the record does not exist, the origin is unknown or
                the path would overwrite a payload file or an
                existing derived artifact
        """
        record = self.load(source_id)
        if record is None:
            raise ValueError(f"Evidence for '{source_id}' not found")
        if derived_from not in record.files:
            raise ValueError(f"Unknown payload '{derived_from}' for {source_id}")
        if any(f.path == relative_path for f in record.files.values()) or relative_path == METADATA_FILE:
            raise ValueError(f"'{relative_path}' is a captured file and cannot be replaced")
        if name in record.derived or any(d.path == relative_path for d in record.derived.values()):
            raise ValueError(f"Derived artifact '{name}' or '{relative_path}' already exists for {source_id}")

        (self.evidence_dir(source_id) / relative_path).write_bytes(data)
        derived = dict(record.derived)
        derived[name] = DerivedArtifact(path=relative_path, hash=hash_bytes(data), derived_from=derived_from)
        updated = record.model_copy(update={"derived": derived})
        write_json(self.evidence_dir(source_id) / METADATA_FILE, updated.to_metadata())
        self._text_cache.pop((source_id, record.evidence_hash), None)
        return updated

    @staticmethod
    def _text_origin(recorded: Dict[str, EvidenceFile]):
        """Payload the text cache is generated from: HTML first, otherwise the first file."""
        for key, info in sorted(recorded.items()):
            if info.path.lower().endswith(HTML_SUFFIXES):
                return key, info
        for key, info in sorted(recorded.items()):
            return key, info
        return None, None
