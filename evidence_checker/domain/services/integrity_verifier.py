"""Capture integrity checks for a single evidence record."""

import logging
import re
from typing import Callable, List, Optional

from ..models.evidence import EvidenceRecord
from ..models.gap import Gap, GapTarget, GapType
from .signature import (
    compute_signature,
    hash_bytes,
    normalize_hash,
    signature_is_well_formed,
)
from .text_extraction import extract_text
from .url_normalizer import is_homepage, is_valid_url

logger = logging.getLogger(__name__)

ROUND_TIMESTAMP = re.compile(r"T\d{2}:00:00(\.0+)?Z$")
COMPILATION_CONTENT = re.compile(
    r"^(research compilation|summary of|synthesis of|overview of|aggregated from|combined from)",
    re.IGNORECASE,
)
SUSPICIOUS_TITLE = re.compile(r"(compilation|synthesis|summary|overview|aggregat|combined)", re.IGNORECASE)
SUSPICIOUS_TYPE = re.compile(r"^(research_synthesis|compilation|aggregate|combined|synthesized)$", re.IGNORECASE)
STUB_FIELDS = (
    "summary", "key_facts", "key_claims", "category",
    "credibility", "relevance", "independence", "reliability",
)

FileReader = Callable[[str, str], Optional[bytes]]


class IntegrityVerifier:
    """Recomputes hashes and signatures and looks for fabrication patterns."""

    def __init__(self, secret: str):
        """Initialize the verifier.

        Args:
            secret: Capture secret the signatures were made with
        """
        self._secret = secret

    def verify(self, record: EvidenceRecord, read_file: FileReader) -> List[Gap]:
        """Check one evidence record.

        Args:
            record: Evidence record as loaded from metadata
            read_file: Callable returning the bytes of (source_id, path) or None

        Returns:
            Gaps found, empty when the record is intact
        """
        gaps: List[Gap] = []
        sid = record.source_id

        payload_ok = self._check_payload(record, read_file, gaps)
        self._check_signature(record, gaps)
        self._check_stub_fields(record, gaps)
        self._check_patterns(record, read_file, gaps)
        if payload_ok:
            self._check_derived(record, read_file, gaps)

        if gaps:
            logger.info(f"🔍 {sid}: {len(gaps)} integrity issue(s)")
        return gaps

    def _check_payload(self, record: EvidenceRecord, read_file: FileReader, gaps: List[Gap]) -> bool:
        sid = record.source_id
        if not record.files:
            gaps.append(Gap.create(
                GapType.PAYLOAD_MISSING,
                f"{sid} declares no payload files",
                GapTarget(source_id=sid),
            ))
            return False

        intact = True
        for name, info in sorted(record.files.items()):
            data = read_file(sid, info.path)
            target = GapTarget(source_id=sid, file=info.path)
            if data is None:
                intact = False
                gaps.append(Gap.create(
                    GapType.PAYLOAD_MISSING,
                    f"{sid} payload '{info.path}' is declared in metadata but missing on disk",
                    target,
                ))
                continue
            actual = hash_bytes(data)
            if actual != normalize_hash(info.hash):
                intact = False
                gaps.append(Gap.create(
                    GapType.CONTENT_HASH_MISMATCH,
                    f"{sid} payload '{info.path}' hashes to {actual} but metadata records {info.hash}",
                    target,
                ))
        return intact

    def _check_signature(self, record: EvidenceRecord, gaps: List[Gap]) -> None:
        sid = record.source_id
        target = GapTarget(source_id=sid)
        if not record.signature:
            gaps.append(Gap.create(
                GapType.SIGNATURE_MISSING,
                f"{sid} has no capture signature; unsigned evidence cannot be trusted",
                target,
            ))
            return
        if not signature_is_well_formed(record.signature):
            gaps.append(Gap.create(
                GapType.SIGNATURE_MALFORMED,
                f"{sid} signature '{record.signature}' is not in the sig_v2_<32 hex> format",
                target,
            ))
            return
        expected = compute_signature(
            sid, record.url, record.captured_at, record.file_hashes, self._secret
        )
        if expected != record.signature:
            gaps.append(Gap.create(
                GapType.SIGNATURE_MISMATCH,
                f"{sid} signature does not match its id, URL, capture time and file hashes",
                target,
            ))

    def _check_stub_fields(self, record: EvidenceRecord, gaps: List[Gap]) -> None:
        extra = record.extra_fields
        found = [name for name in STUB_FIELDS if name in extra]
        if "id" in extra and extra.get("source_id_missing"):
            found.append("id")
        if found:
            gaps.append(Gap.create(
                GapType.STUB_EVIDENCE,
                f"{record.source_id} metadata carries hand-written fields: {', '.join(found)}",
                GapTarget(source_id=record.source_id, file="metadata.json"),
            ))

    def _check_patterns(self, record: EvidenceRecord, read_file: FileReader, gaps: List[Gap]) -> None:
        sid = record.source_id
        target = GapTarget(source_id=sid)

        if record.captured_at and ROUND_TIMESTAMP.search(record.captured_at):
            gaps.append(Gap.create(
                GapType.ROUND_TIMESTAMP,
                f"{sid} capture time {record.captured_at} is exactly on the hour",
                target,
            ))

        if not is_valid_url(record.url):
            gaps.append(Gap.create(
                GapType.INVALID_URL,
                f"{sid} URL '{record.url}' is not a real http(s) address",
                target,
            ))
        elif is_homepage(record.url):
            gaps.append(Gap.create(
                GapType.HOMEPAGE_URL,
                f"{sid} cites the homepage {record.url} rather than a specific page",
                target,
            ))

        if record.source_type and SUSPICIOUS_TYPE.match(record.source_type.strip()):
            gaps.append(Gap.create(
                GapType.SYNTHETIC_SOURCE_TYPE,
                f"{sid} declares itself a '{record.source_type}' rather than a captured source",
                target,
            ))

        if record.title and SUSPICIOUS_TITLE.search(record.title):
            gaps.append(Gap.create(
                GapType.SUSPICIOUS_TITLE,
                f"{sid} title '{record.title}' suggests compiled rather than captured content",
                target,
            ))

        opening = self._opening_text(record, read_file)
        if opening and COMPILATION_CONTENT.match(opening):
            gaps.append(Gap.create(
                GapType.FABRICATED_CONTENT,
                f"{sid} content opens with compilation boilerplate: '{opening[:60]}'",
                target,
            ))

    def _opening_text(self, record: EvidenceRecord, read_file: FileReader) -> str:
        for name, info in sorted(record.files.items()):
            data = read_file(record.source_id, info.path)
            if data is None:
                continue
            text = extract_text(data, info.path).lstrip("# \n")
            if text:
                return text
        return ""

    def _check_derived(self, record: EvidenceRecord, read_file: FileReader, gaps: List[Gap]) -> None:
        sid = record.source_id
        artifact = record.text_artifact
        if artifact is None:
            return
        cached = read_file(sid, artifact.path)
        if cached is None:
            return
        origin = record.files.get(artifact.derived_from)
        payload = read_file(sid, origin.path) if origin else None
        if payload is None:
            gaps.append(Gap.create(
                GapType.EXTRACTED_TEXT_MISMATCH,
                f"{sid} derived '{artifact.path}' names unknown payload '{artifact.derived_from}'",
                GapTarget(source_id=sid, file=artifact.path),
            ))
            return
        expected = extract_text(payload, origin.path)
        if cached.decode("utf-8", errors="replace").strip() != expected:
            gaps.append(Gap.create(
                GapType.EXTRACTED_TEXT_MISMATCH,
                f"{sid} cached text '{artifact.path}' differs from text regenerated from '{origin.path}'",
                GapTarget(source_id=sid, file=artifact.path),
            ))
