"""Protocol for reading and writing the state of one investigation case."""

from typing import Any, Dict, List, Optional, Protocol, Tuple

from ..models.audit import AuditChainRecord, LedgerEvent
from ..models.claim import ClaimRecord, RegisteredClaim
from ..models.evidence import EvidenceRecord, SourceEntry


class CaseStore(Protocol):
    """Protocol defining how the verification pipeline reaches case state.

    Readers never mutate evidence. Each writer method owns exactly one file.
    """

    @property
    def case_name(self) -> str:
        """Short name of the case, used in logs."""
        ...

    def read_narrative(self) -> Optional[str]:
        """Narrative text, or None when it has not been written yet."""
        ...

    def load_sources(self) -> Dict[str, SourceEntry]:
        """Source registry keyed by source id."""
        ...

    def list_evidence_ids(self) -> List[str]:
        """Source ids that have an evidence directory."""
        ...

    def load_evidence(self, source_id: str) -> Optional[EvidenceRecord]:
        """Evidence record, None when absent, ValueError when unreadable."""
        ...

    def read_evidence_file(self, source_id: str, relative_path: str) -> Optional[bytes]:
        """Raw bytes of a file in an evidence directory, None when absent."""
        ...

    def load_evidence_text(self, record: EvidenceRecord) -> str:
        """Plain text of a captured source."""
        ...

    def load_claim_records(self) -> Dict[str, ClaimRecord]:
        """Claim records keyed by claim hash."""
        ...

    def save_claim_records(self, records: List[ClaimRecord]) -> None:
        """Replace the stored claim records."""
        ...

    def load_registered_claims(self) -> List[RegisteredClaim]:
        """Claim registry entries in id order."""
        ...

    def save_registered_claims(self, claims: List[RegisteredClaim]) -> None:
        """Replace the stored claim registry entries."""
        ...

    def allocate_claim_ids(self, count: int) -> List[str]:
        """Reserve the next ``count`` claim ids."""
        ...

    def load_ledger(self) -> List[LedgerEvent]:
        """Ledger entries in file order."""
        ...

    def load_audit_chain(self) -> Optional[AuditChainRecord]:
        """Audit chain stored by the previous run."""
        ...

    def save_audit_chain(self, record: AuditChainRecord) -> None:
        """Store the audit chain of this run."""
        ...

    def load_task_gap_files(self) -> List[Tuple[str, Any]]:
        """Per-task gap files as (name, parsed JSON); ValueError entries for unreadable files."""
        ...

    def read_legal_review(self) -> Optional[str]:
        """Legal review text, None when absent."""
        ...

    def load_digest(self) -> Optional[Dict[str, Any]]:
        """Digest written by the previous run."""
        ...

    def write_gap_report(self, report: Dict[str, Any], digest: Dict[str, Any]) -> None:
        """Write gaps.json and digest.json."""
        ...

    def load_gap_report(self) -> Optional[Dict[str, Any]]:
        """gaps.json written by the previous run, None when absent."""
        ...
