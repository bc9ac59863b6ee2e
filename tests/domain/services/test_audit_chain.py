"""Tests for the audit hash chain and the ledger auditor."""

from evidence_checker.domain.models.audit import GENESIS_HASH, LedgerEvent, LedgerEventType
from evidence_checker.domain.models.gap import GapType
from evidence_checker.domain.services.audit_chain import AuditChain, canonical_hash, verify_chain
from evidence_checker.domain.services.ledger_auditor import audit_ledger

STEPS = [
    ("integrity", {"sources": ["S001"]}, {"gaps": []}),
    ("binding", {"citations": 2}, {"bindings": ["S001"]}),
    ("claims", {"claims": 3}, {"verified": 3}),
]


def build_chain() -> AuditChain:
    chain = AuditChain()
    for step, step_input, step_output in STEPS:
        chain.record(step, step_input, step_output)
    return chain


def test_canonical_hash_ignores_key_order():
    assert canonical_hash({"a": 1, "b": [1, 2]}) == canonical_hash({"b": [1, 2], "a": 1})
    assert canonical_hash({"a": 1}) != canonical_hash({"a": 2})


def test_empty_chain_has_genesis_hash():
    assert AuditChain().chain_hash == GENESIS_HASH


def test_chain_hash_is_deterministic():
    """Test identical step inputs and outputs give an identical chain hash."""
    first = build_chain()
    second = build_chain()

    assert first.chain_hash == second.chain_hash
    assert first.entries[1].previous_hash == first.entries[0].step_hash
    assert verify_chain(first.to_record()) == []


def test_tampered_entry_is_detected():
    """Test editing a stored entry breaks verification."""
    record = build_chain().to_record()
    tampered = record.entries[1].model_copy(update={"output_hash": canonical_hash({"bindings": []})})
    record.entries[1] = tampered

    problems = verify_chain(record)

    assert any("binding" in problem and "step hash" in problem for problem in problems)


def test_stored_chain_hash_must_match_last_entry():
    record = build_chain().to_record()
    record.chain_hash = GENESIS_HASH

    assert verify_chain(record) == ["stored chain hash does not match the last entry"]


def test_replay_detects_changed_step_output():
    """Test replaying different outputs against a stored chain."""
    record = build_chain().to_record()
    replay = list(STEPS)
    replay[2] = ("claims", {"claims": 3}, {"verified": 2})

    problems = verify_chain(record, replay)

    assert problems == ["step 'claims' input or output differs from what was recorded"]
    assert verify_chain(record, list(STEPS)) == []


def test_replay_with_missing_step():
    record = build_chain().to_record()

    problems = verify_chain(record, list(STEPS[:2]))

    assert problems == ["replay has 2 steps but the chain has 3"]


def event(ledger_id: str, kind: LedgerEventType, target: str = "claims.json") -> LedgerEvent:
    return LedgerEvent(id=ledger_id, event=kind, target=target)


def test_balanced_ledger_has_no_gaps():
    events = [
        event("L001", LedgerEventType.FILE_LOCK),
        event("L002", LedgerEventType.ALLOCATE),
        event("L003", LedgerEventType.FILE_UNLOCK),
    ]

    assert audit_ledger(events) == []


def test_lock_never_released():
    """Test a lock without a matching unlock is flagged."""
    gaps = audit_ledger([
        event("L001", LedgerEventType.FILE_LOCK),
        event("L002", LedgerEventType.ALLOCATE),
    ])

    assert [gap.type for gap in gaps] == [GapType.UNBALANCED_LOCK]
    assert gaps[0].is_blocking
    assert "never unlocked" in gaps[0].message


def test_unlock_without_lock():
    gaps = audit_ledger([event("L001", LedgerEventType.FILE_UNLOCK, "sources.json")])

    assert [gap.type for gap in gaps] == [GapType.UNBALANCED_LOCK]
    assert "not locked" in gaps[0].message


def test_double_lock_on_same_target():
    gaps = audit_ledger([
        event("L001", LedgerEventType.FILE_LOCK),
        event("L002", LedgerEventType.FILE_LOCK),
        event("L003", LedgerEventType.FILE_UNLOCK),
    ])

    assert [gap.type for gap in gaps] == [GapType.UNBALANCED_LOCK]
    assert "still holds" in gaps[0].message


def test_duplicate_and_skipped_ids():
    """Test ledger id problems are reported as ledger-integrity gaps."""
    gaps = audit_ledger([
        event("L001", LedgerEventType.NOTE),
        event("L001", LedgerEventType.NOTE),
        event("L004", LedgerEventType.NOTE),
        event("entry-5", LedgerEventType.NOTE),
    ])

    messages = [gap.message for gap in gaps]
    assert all(gap.type == GapType.LEDGER_INTEGRITY for gap in gaps)
    assert not any(gap.is_blocking for gap in gaps)
    assert "Ledger entry id 'entry-5' is not in the L### format" in messages
    assert "Ledger entry id L001 appears more than once" in messages
    assert "Ledger ids skip 2 number(s), first missing L002" in messages
