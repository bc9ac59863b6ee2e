"""Hash chain over pipeline step inputs and outputs."""

import hashlib
import json
import logging
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel

from ..models.audit import GENESIS_HASH, AuditChainRecord, AuditEntry

logger = logging.getLogger(__name__)


def to_jsonable(value: Any) -> Any:
    """Convert models, enums and containers to plain JSON values."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted(to_jsonable(v) for v in value)
    return value


def canonical_hash(value: Any) -> str:
    """sha256 over canonical JSON (sorted keys, compact separators)."""
    payload = json.dumps(to_jsonable(value), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def compute_step_hash(input_hash: str, output_hash: str, previous_hash: str) -> str:
    return hashlib.sha256(f"{input_hash}{output_hash}{previous_hash}".encode("utf-8")).hexdigest()


class AuditChain:
    """Append-only chain of audit entries for one run."""

    def __init__(self):
        """Initialize an empty chain."""
        self._entries: List[AuditEntry] = []

    @property
    def entries(self) -> List[AuditEntry]:
        return list(self._entries)

    @property
    def chain_hash(self) -> str:
        """Step hash of the last entry, or the genesis hash when empty."""
        return self._entries[-1].step_hash if self._entries else GENESIS_HASH

    def record(self, step: str, step_input: Any, step_output: Any) -> AuditEntry:
        """Append an entry for a finished step.

        Args:
            step: Step name
            step_input: Anything JSON-serializable describing what the step read
            step_output: Anything JSON-serializable describing what the step produced

        Returns:
            The new entry
        """
        input_hash = canonical_hash(step_input)
        output_hash = canonical_hash(step_output)
        entry = AuditEntry(
            step=step,
            input_hash=input_hash,
            output_hash=output_hash,
            previous_hash=self.chain_hash,
            step_hash=compute_step_hash(input_hash, output_hash, self.chain_hash),
        )
        self._entries.append(entry)
        logger.debug(f"🔗 {step}: {entry.step_hash[:12]}")
        return entry

    def to_record(self) -> AuditChainRecord:
        return AuditChainRecord(chain_hash=self.chain_hash, entries=self.entries)


def verify_chain(record: AuditChainRecord, replay: Optional[List[tuple]] = None) -> List[str]:
    """Recompute a stored chain.

    Args:
        record: Stored chain
        replay: Optional (step, input, output) triples to re-hash against the
            stored input/output hashes

    Returns:
        Problems found, empty when the chain is intact
    """
    problems: List[str] = []
    previous = GENESIS_HASH
    for index, entry in enumerate(record.entries):
        if entry.previous_hash != previous:
            problems.append(f"entry {index} ({entry.step}) does not link to the previous entry")
        expected = compute_step_hash(entry.input_hash, entry.output_hash, entry.previous_hash)
        if expected != entry.step_hash:
            problems.append(f"entry {index} ({entry.step}) step hash does not match its contents")
        previous = entry.step_hash

    if record.chain_hash != previous:
        problems.append("stored chain hash does not match the last entry")

    if replay is not None:
        if len(replay) != len(record.entries):
            problems.append(f"replay has {len(replay)} steps but the chain has {len(record.entries)}")
        for entry, (step, step_input, step_output) in zip(record.entries, replay):
            if entry.step != step:
                problems.append(f"replayed step '{step}' does not match stored step '{entry.step}'")
            elif canonical_hash(step_input) != entry.input_hash or canonical_hash(step_output) != entry.output_hash:
                problems.append(f"step '{step}' input or output differs from what was recorded")
    return problems
