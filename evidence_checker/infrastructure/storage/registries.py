"""Source registry, claim registry and claim record files."""

import logging
import re
from pathlib import Path
from typing import Dict, List

from ...domain.models.audit import LedgerEventType
from ...domain.models.claim import ClaimRecord, RegisteredClaim, format_claim_id
from ...domain.models.evidence import SourceEntry, format_source_id
from .json_files import read_json, write_json
from .ledger import FileLedger

logger = logging.getLogger(__name__)

SOURCES_FILE = "sources.json"
CLAIMS_FILE = "claims.json"
CLAIM_SUPPORT_FILE = "claim-support.json"


def _highest(ids: List[str], prefix: str) -> int:
    numbers = [int(m.group(1)) for m in (re.match(rf"^{prefix}(\d+)$", i) for i in ids) if m]
    return max(numbers, default=0)


class SourceRegistry:
    """Append-only mapping of source ids to URLs and evidence paths."""

    def __init__(self, case_dir: Path, ledger: FileLedger):
        """Initialize the registry.

        Args:
            case_dir: Case directory
            ledger: Ledger used to record allocations
        """
        self._path = Path(case_dir) / SOURCES_FILE
        self._ledger = ledger

    def _read(self) -> dict:
        data = read_json(self._path, default={"next_id": 1, "sources": []})
        if isinstance(data, list):
            data = {"sources": data}
        data.setdefault("sources", [])
        return data

    def load(self) -> Dict[str, SourceEntry]:
        """Entries keyed by source id."""
        entries = [SourceEntry(**item) for item in self._read()["sources"]]
        return {entry.id: entry for entry in entries}

    def allocate(self, url: str, primary: bool = False) -> SourceEntry:
        """Register a new source under the next unused id."""
        with self._ledger.locked(SOURCES_FILE):
            data = self._read()
            ids = [item.get("id", "") for item in data["sources"]]
            number = max(int(data.get("next_id", 1)), _highest(ids, "S") + 1)
            entry = SourceEntry(id=format_source_id(number), url=url, primary=primary)
            data["sources"].append(entry.model_dump())
            data["next_id"] = number + 1
            write_json(self._path, data)
            self._ledger.append(LedgerEventType.ALLOCATE, SOURCES_FILE, {"id": entry.id})
        logger.info(f"📝 Allocated source {entry.id} for {url}")
        return entry

    def mark_captured(self, source_id: str, evidence_path: str) -> SourceEntry:
        """Record that a source's evidence now exists.

        Raises:
            ValueError: If the source id is not registered
        """
        with self._ledger.locked(SOURCES_FILE):
            data = self._read()
            for item in data["sources"]:
                if item.get("id") == source_id:
                    item["captured"] = True
                    item["evidence_path"] = evidence_path
                    write_json(self._path, data)
                    return SourceEntry(**item)
        raise ValueError(f"Source '{source_id}' not found")


class ClaimRegistry:
    """claims.json: registered claims with their corroboration state."""

    def __init__(self, case_dir: Path, ledger: FileLedger):
        """Initialize the registry.

        Args:
            case_dir: Case directory
            ledger: Ledger used to record allocations
        """
        self._path = Path(case_dir) / CLAIMS_FILE
        self._ledger = ledger

    def _read(self) -> dict:
        data = read_json(self._path, default={"next_id": 1, "claims": []})
        if isinstance(data, list):
            data = {"claims": data}
        data.setdefault("claims", [])
        return data

    def load(self) -> List[RegisteredClaim]:
        claims = [RegisteredClaim(**item) for item in self._read()["claims"]]
        return sorted(claims, key=lambda c: c.id)

    def save(self, claims: List[RegisteredClaim]) -> None:
        data = self._read()
        data["claims"] = [claim.model_dump(mode="json") for claim in claims]
        data["next_id"] = max(int(data.get("next_id", 1)), _highest([c.id for c in claims], "CL") + 1)
        write_json(self._path, data)

    def allocate_ids(self, count: int) -> List[str]:
        """Reserve ``count`` new claim ids. Ids are never handed out twice."""
        if count <= 0:
            return []
        with self._ledger.locked(CLAIMS_FILE):
            data = self._read()
            ids = [item.get("id", "") for item in data["claims"]]
            start = max(int(data.get("next_id", 1)), _highest(ids, "CL") + 1)
            allocated = [format_claim_id(n) for n in range(start, start + count)]
            data["next_id"] = start + count
            write_json(self._path, data)
            self._ledger.append(
                LedgerEventType.ALLOCATE, CLAIMS_FILE, {"ids": [allocated[0], allocated[-1]]}
            )
        return allocated


class ClaimRecordStore:
    """claim-support.json: per-citation claim verification records."""

    def __init__(self, case_dir: Path):
        self._path = Path(case_dir) / CLAIM_SUPPORT_FILE

    def load(self) -> Dict[str, ClaimRecord]:
        data = read_json(self._path, default={"claims": []})
        items = data.get("claims", []) if isinstance(data, dict) else data
        records = [ClaimRecord(**item) for item in items]
        return {record.claim_hash: record for record in records}

    def save(self, records: List[ClaimRecord]) -> None:
        write_json(self._path, {"claims": [r.model_dump(mode="json") for r in records]})
