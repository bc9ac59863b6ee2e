"""On-disk case directory implementing the CaseStore port."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ...domain.models.audit import AuditChainRecord, LedgerEvent
from ...domain.models.claim import ClaimRecord, RegisteredClaim
from ...domain.models.evidence import EvidenceRecord, SourceEntry
from ..config import CheckerSettings
from .evidence_store import FileEvidenceStore
from .json_files import read_json, write_json
from .ledger import FileLedger
from .registries import ClaimRecordStore, ClaimRegistry, SourceRegistry

logger = logging.getLogger(__name__)

CONTROL_DIR = "control"
GAPS_FILE = "gaps.json"
DIGEST_FILE = "digest.json"
AUDIT_CHAIN_FILE = "audit-chain.json"
TASK_GAPS_DIR = "gaps.d"
LEGAL_REVIEW_FILE = "legal-review.md"


class CaseWorkspace:
    """One investigation case on disk.

    Args:
        case_dir: Case directory
        settings: Checker settings; narrative path, capture secret and text cache size

    Raises:
        FileNotFoundError: If the case directory does not exist
    """

    def __init__(self, case_dir: Path, settings: Optional[CheckerSettings] = None):
        self.root = Path(case_dir)
        if not self.root.is_dir():
            raise FileNotFoundError(f"Case directory not found: {self.root}")
        self.settings = settings or CheckerSettings()
        self.ledger = FileLedger(self.root)
        self.sources = SourceRegistry(self.root, self.ledger)
        self.claims = ClaimRegistry(self.root, self.ledger)
        self.claim_records = ClaimRecordStore(self.root)
        self.evidence = FileEvidenceStore(
            self.root,
            self.settings.capture_secret,
            cache_ttl=self.settings.text_cache_ttl,
            cache_maxsize=self.settings.text_cache_size,
        )

    @property
    def case_name(self) -> str:
        return self.root.name

    @property
    def control_dir(self) -> Path:
        return self.root / CONTROL_DIR

    # Narrative and review

    def read_narrative(self) -> Optional[str]:
        path = self.root / self.settings.narrative_path
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def read_legal_review(self) -> Optional[str]:
        path = self.root / LEGAL_REVIEW_FILE
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    # Sources and evidence

    def load_sources(self) -> Dict[str, SourceEntry]:
        return self.sources.load()

    def list_evidence_ids(self) -> List[str]:
        return self.evidence.list_ids()

    def load_evidence(self, source_id: str) -> Optional[EvidenceRecord]:
        return self.evidence.load(source_id)

    def read_evidence_file(self, source_id: str, relative_path: str) -> Optional[bytes]:
        return self.evidence.read_file(source_id, relative_path)

    def load_evidence_text(self, record: EvidenceRecord) -> str:
        return self.evidence.load_text(record)

    def capture(
        self,
        url: str,
        files: Dict[str, bytes],
        title: str = "",
        primary: bool = False,
        **kwargs,
    ) -> EvidenceRecord:
        """Register a source, write its evidence and mark it captured.

        Args:
            url: Origin URL
            files: Payload file name -> bytes
            title: Page title
            primary: Whether the source is a primary document
            **kwargs: Passed through to FileEvidenceStore.create

        Returns:
            The signed evidence record
        """
        entry = self.sources.allocate(url, primary=primary)
        record = self.evidence.create(entry.id, url, files, title=title, **kwargs)
        self.sources.mark_captured(entry.id, f"evidence/{entry.id}")
        return record

    # Claims

    def load_claim_records(self) -> Dict[str, ClaimRecord]:
        return self.claim_records.load()

    def save_claim_records(self, records: List[ClaimRecord]) -> None:
        self.claim_records.save(sorted(records, key=lambda r: (r.source_id, r.line, r.claim_hash)))

    def load_registered_claims(self) -> List[RegisteredClaim]:
        return self.claims.load()

    def save_registered_claims(self, claims: List[RegisteredClaim]) -> None:
        self.claims.save(claims)

    def allocate_claim_ids(self, count: int) -> List[str]:
        return self.claims.allocate_ids(count)

    # Control state

    def load_ledger(self) -> List[LedgerEvent]:
        return self.ledger.load()

    def load_audit_chain(self) -> Optional[AuditChainRecord]:
        data = read_json(self.control_dir / AUDIT_CHAIN_FILE)
        if data is None:
            return None
        try:
            return AuditChainRecord(**data)
        except (TypeError, ValueError) as e:
            raise ValueError(f"{AUDIT_CHAIN_FILE} has an unexpected shape: {e}")

    def save_audit_chain(self, record: AuditChainRecord) -> None:
        write_json(self.control_dir / AUDIT_CHAIN_FILE, record.model_dump(mode="json"))

    def load_task_gap_files(self) -> List[Tuple[str, Any]]:
        directory = self.control_dir / TASK_GAPS_DIR
        if not directory.is_dir():
            return []
        files: List[Tuple[str, Any]] = []
        for path in sorted(directory.glob("*.json")):
            try:
                files.append((path.name, read_json(path)))
            except ValueError as e:
                files.append((path.name, e))
        return files

    def load_digest(self) -> Optional[Dict[str, Any]]:
        try:
            data = read_json(self.control_dir / DIGEST_FILE)
        except ValueError as e:
            logger.warning(f"⚠️ Ignoring unreadable digest: {e}")
            return None
        return data if isinstance(data, dict) else None

    def load_gap_report(self) -> Optional[Dict[str, Any]]:
        data = read_json(self.control_dir / GAPS_FILE)
        if data is not None and not isinstance(data, dict):
            raise ValueError(f"{GAPS_FILE} is not an object")
        return data

    def write_gap_report(self, report: Dict[str, Any], digest: Dict[str, Any]) -> None:
        write_json(self.control_dir / GAPS_FILE, report)
        write_json(self.control_dir / DIGEST_FILE, digest)
        logger.info(f"📝 Wrote {CONTROL_DIR}/{GAPS_FILE} and {CONTROL_DIR}/{DIGEST_FILE}")
