"""Domain models for the audit chain and the lock/allocation ledger."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, Field

GENESIS_HASH = "0" * 64


def utc_now() -> str:
    """Current UTC time in the ISO-8601 form used across case files."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


class AuditEntry(BaseModel):
    """One pipeline step execution, linked to the previous one by hash."""

    step: str = Field(..., description="Pipeline step name")
    input_hash: str = Field(..., description="Hash of the canonical step input")
    output_hash: str = Field(..., description="Hash of the canonical step output")
    previous_hash: str = Field(default=GENESIS_HASH, description="Step hash of the previous entry")
    step_hash: str = Field(..., description="sha256(input_hash + output_hash + previous_hash)")
    timestamp: str = Field(default_factory=utc_now, description="Informational only, not hashed")

    class Config:
        """Pydantic model configuration."""
        frozen = True


class AuditChainRecord(BaseModel):
    """A stored chain for one run."""

    chain_hash: str = Field(default=GENESIS_HASH)
    entries: List[AuditEntry] = Field(default_factory=list)


class LedgerEventType(str, Enum):
    """Kinds of ledger entries."""

    FILE_LOCK = "file_lock"
    FILE_UNLOCK = "file_unlock"
    ALLOCATE = "allocate"
    NOTE = "note"


class LedgerEvent(BaseModel):
    """An append-only ledger entry."""

    id: str = Field(..., description="Sequential identifier (L001)")
    event: LedgerEventType = Field(..., description="Event type")
    target: str = Field(default="", description="File or resource the event concerns")
    actor: str = Field(default="", description="Who performed the action")
    timestamp: str = Field(default_factory=utc_now)
    details: Dict[str, Any] = Field(default_factory=dict)


def format_ledger_id(number: int) -> str:
    """Format a ledger counter value as an identifier (4 -> L004)."""
    return f"L{number:03d}"
