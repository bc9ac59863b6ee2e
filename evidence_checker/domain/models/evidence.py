"""Domain models for captured evidence and the source registry."""

import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

SOURCE_ID_PATTERN = re.compile(r"^S\d{3,}$")
TEXT_ARTIFACT_KIND = "extracted-text"


def validate_source_id(value: str) -> str:
    """Raise ValueError unless value looks like S001."""
    if not SOURCE_ID_PATTERN.match(value or ""):
        raise ValueError(f"Invalid source id: '{value}'")
    return value


def format_source_id(number: int) -> str:
    """Format a source counter value as an identifier (7 -> S007)."""
    return f"S{number:03d}"


class EvidenceFile(BaseModel):
    """A payload file as recorded at capture time."""

    path: str = Field(..., description="Path relative to the evidence directory")
    hash: str = Field(..., description="Content hash, formatted as sha256:<hex>")
    size: int = Field(default=0, description="Size in bytes")

    class Config:
        """Pydantic model configuration."""
        frozen = True


class DerivedArtifact(BaseModel):
    """A file generated after capture from one of the payload files."""

    path: str = Field(..., description="Path relative to the evidence directory")
    hash: str = Field(..., description="Content hash at the time it was written")
    derived_from: str = Field(..., description="Name of the payload file it was generated from")
    kind: str = Field(default="artifact", description="extracted-text for the text cache, artifact otherwise")

    class Config:
        """Pydantic model configuration."""
        frozen = True


class EvidenceRecord(BaseModel):
    """Immutable capture of one external source plus its integrity signature."""

    source_id: str = Field(..., description="Monotonic source identifier (S001)")
    url: str = Field(default="", description="Origin URL")
    title: str = Field(default="", description="Title reported by the capture tool")
    captured_at: str = Field(default="", description="ISO-8601 UTC capture timestamp")
    capture_method: str = Field(default="", description="Tool used for the capture")
    source_type: Optional[str] = Field(default=None, description="Self-declared source type, if any")
    files: Dict[str, EvidenceFile] = Field(default_factory=dict, description="Signed payload files")
    derived: Dict[str, DerivedArtifact] = Field(default_factory=dict, description="Unsigned derived artifacts")
    signature: Optional[str] = Field(default=None, description="Capture signature (sig_v2_...)")
    signature_version: Optional[str] = Field(default=None, description="Signature scheme version")
    extra_fields: Dict[str, Any] = Field(default_factory=dict, description="Other keys found in the metadata file")

    class Config:
        """Pydantic model configuration."""
        frozen = True
        json_schema_extra = {
            "example": {
                "source_id": "S001",
                "url": "https://www.example.org/reports/2024/survey",
                "title": "2024 household survey",
                "captured_at": "2024-03-14T09:26:53.589Z",
                "capture_method": "browser",
                "files": {
                    "raw_html": {
                        "path": "raw.html",
                        "hash": "sha256:9f86d081884c7d659a2feaa0c55ad015a3bf4f1b2b0b822cd15d6c15b0f00a08",
                        "size": 48213,
                    }
                },
                "signature": "sig_v2_3f2a9c1e0b7d4a6f8e5c2b1a0d9f8e7c",
            }
        }

    @property
    def file_hashes(self) -> list:
        """Stored payload hashes in canonical (sorted) order."""
        return sorted(f.hash for f in self.files.values())

    @property
    def evidence_hash(self) -> str:
        """Single value that changes whenever any payload hash changes."""
        return "|".join(self.file_hashes)

    @property
    def text_artifact(self) -> Optional[DerivedArtifact]:
        """The extracted-text cache among the derived artifacts, if any."""
        for name, artifact in sorted(self.derived.items()):
            if artifact.kind == TEXT_ARTIFACT_KIND:
                return artifact
        return None

    def to_metadata(self) -> Dict[str, Any]:
        """Serialize to the on-disk metadata.json layout."""
        data: Dict[str, Any] = dict(self.extra_fields)
        data.update({
            "source_id": self.source_id,
            "url": self.url,
            "title": self.title,
            "captured_at": self.captured_at,
            "capture_method": self.capture_method,
            "files": {name: f.model_dump() for name, f in self.files.items()},
        })
        if self.source_type is not None:
            data["type"] = self.source_type
        if self.derived:
            data["derived"] = {name: d.model_dump() for name, d in self.derived.items()}
        if self.signature is not None:
            data["_capture_signature"] = self.signature
        if self.signature_version is not None:
            data["_signature_version"] = self.signature_version
        return data

    @classmethod
    def from_metadata(cls, source_id: str, data: Dict[str, Any]) -> "EvidenceRecord":
        """Build a record from a metadata.json payload.

        ``source_id`` is the directory name; the metadata's own ``source_id`` is
        kept in ``extra_fields`` when it disagrees so the integrity check can
        see it.
        """
        known = {
            "source_id", "url", "title", "captured_at", "capture_method", "type",
            "files", "derived", "_capture_signature", "_signature_version",
        }
        extra = {k: v for k, v in data.items() if k not in known}
        if data.get("source_id") not in (None, source_id):
            extra["declared_source_id"] = data.get("source_id")
        if "source_id" not in data:
            extra["source_id_missing"] = True

        files_data = data.get("files") or {}
        derived_data = data.get("derived") or {}
        if not isinstance(files_data, dict):
            raise ValueError(f"'files' in metadata of {source_id} is not an object")
        if not isinstance(derived_data, dict):
            raise ValueError(f"'derived' in metadata of {source_id} is not an object")

        files = {}
        for name, info in files_data.items():
            if isinstance(info, dict) and info.get("path"):
                try:
                    size = int(info.get("size", 0) or 0)
                except TypeError:
                    raise ValueError(f"size of '{name}' in metadata of {source_id} is not a number")
                files[name] = EvidenceFile(
                    path=info["path"],
                    hash=str(info.get("hash", "")),
                    size=size,
                )
        derived = {}
        for name, info in derived_data.items():
            if isinstance(info, dict) and info.get("path"):
                derived[name] = DerivedArtifact(
                    path=info["path"],
                    hash=str(info.get("hash", "")),
                    derived_from=str(info.get("derived_from", "")),
                    kind=str(info.get("kind") or "artifact"),
                )

        return cls(
            source_id=source_id,
            url=str(data.get("url") or ""),
            title=str(data.get("title") or ""),
            captured_at=str(data.get("captured_at") or ""),
            capture_method=str(data.get("capture_method") or ""),
            source_type=data.get("type"),
            files=files,
            derived=derived,
            signature=data.get("_capture_signature"),
            signature_version=data.get("_signature_version"),
            extra_fields=extra,
        )


class SourceEntry(BaseModel):
    """One entry in the append-only source registry."""

    id: str = Field(..., description="Source identifier")
    url: str = Field(default="", description="URL the source was registered with")
    captured: bool = Field(default=False, description="Whether evidence has been captured")
    evidence_path: Optional[str] = Field(default=None, description="Evidence directory relative to the case")
    primary: bool = Field(default=False, description="Whether the source is a primary source")

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        return validate_source_id(value)
