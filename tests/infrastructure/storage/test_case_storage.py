"""Tests for the on-disk case stores."""

import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from evidence_checker.domain.models.audit import LedgerEventType
from evidence_checker.domain.models.claim import RegisteredClaim
from evidence_checker.domain.services.ledger_auditor import audit_ledger
from evidence_checker.domain.services.signature import compute_signature
from evidence_checker.infrastructure.storage.case_workspace import CaseWorkspace
from evidence_checker.infrastructure.storage.evidence_store import FileEvidenceStore
from evidence_checker.infrastructure.storage.ledger import FileLedger
from evidence_checker.infrastructure.storage.registries import ClaimRegistry, SourceRegistry

from conftest import ASSISTANCE_TEXT, CAPTURED_AT, HOUSING_HTML, TEST_SECRET


@pytest.fixture
def store(case_dir) -> FileEvidenceStore:
    return FileEvidenceStore(case_dir, TEST_SECRET)


def test_missing_case_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        CaseWorkspace(tmp_path / "no-such-case")


def test_ledger_lock_is_exclusive(case_dir):
    """Test a second writer cannot take a held lock and both ends are recorded."""
    ledger = FileLedger(case_dir)

    with ledger.locked("sources.json"):
        with pytest.raises(RuntimeError, match="Lock already held"):
            with ledger.locked("sources.json"):
                pass

    events = ledger.load()
    assert [e.event for e in events] == [LedgerEventType.FILE_LOCK, LedgerEventType.FILE_UNLOCK]
    assert [e.id for e in events] == ["L001", "L002"]
    assert not (case_dir / "sources.json.lock").exists()


def test_lock_released_when_block_raises(case_dir):
    ledger = FileLedger(case_dir)

    with pytest.raises(ValueError):
        with ledger.locked("claims.json"):
            raise ValueError("write failed")

    assert audit_ledger(ledger.load()) == []
    assert not (case_dir / "claims.json.lock").exists()


def test_ledger_ids_continue_after_highest(case_dir):
    """Test a ledger with a hole in its ids never reissues an id."""
    (case_dir / "ledger.json").write_text(json.dumps({"entries": [
        {"id": "L001", "event": "file_lock", "target": "sources.json"},
        {"id": "L003", "event": "file_unlock", "target": "sources.json"},
    ]}), encoding="utf-8")

    entry = FileLedger(case_dir).append(LedgerEventType.FILE_LOCK, "claims.json")

    assert entry.id == "L004"


def test_ledger_append_waits_for_ledger_lock(case_dir):
    """Test an append gives up while another writer holds the ledger itself."""
    ledger = FileLedger(case_dir, lock_timeout=0.05)
    (case_dir / "ledger.json.lock").write_text("", encoding="utf-8")

    with pytest.raises(RuntimeError, match="Timed out"):
        ledger.append(LedgerEventType.FILE_LOCK, "sources.json")
    with pytest.raises(RuntimeError, match="Timed out"):
        with ledger.locked("sources.json"):
            pass
    assert ledger.load() == []
    assert not (case_dir / "sources.json.lock").exists()

    (case_dir / "ledger.json.lock").unlink()
    assert ledger.append(LedgerEventType.FILE_LOCK, "sources.json").id == "L001"


def test_writers_on_different_targets_share_one_ledger(case_dir):
    """Test concurrent writers locking different files lose no ledger events."""

    def write(target):
        ledger = FileLedger(case_dir)
        for _ in range(10):
            with ledger.locked(target):
                pass

    with ThreadPoolExecutor(max_workers=2) as pool:
        list(pool.map(write, ["sources.json", "claims.json"]))

    events = FileLedger(case_dir).load()
    assert len(events) == 40
    assert [e.id for e in events] == [f"L{n:03d}" for n in range(1, 41)]
    assert audit_ledger(events) == []


def test_source_ids_are_never_reused(case_dir):
    """Test allocation continues past the highest id ever registered."""
    ledger = FileLedger(case_dir)
    registry = SourceRegistry(case_dir, ledger)
    (case_dir / "sources.json").write_text(json.dumps({
        "next_id": 3,
        "sources": [{"id": "S007", "url": "https://example.org/a"}],
    }), encoding="utf-8")

    entry = registry.allocate("https://example.org/b", primary=True)

    assert entry.id == "S008"
    assert entry.primary
    assert registry.load()["S008"].url == "https://example.org/b"
    assert audit_ledger(ledger.load()) == []


def test_mark_captured_unknown_source(case_dir):
    registry = SourceRegistry(case_dir, FileLedger(case_dir))

    with pytest.raises(ValueError, match="not found"):
        registry.mark_captured("S001", "evidence/S001")


def test_claim_ids_allocated_in_blocks(case_dir):
    registry = ClaimRegistry(case_dir, FileLedger(case_dir))

    assert registry.allocate_ids(0) == []
    assert registry.allocate_ids(2) == ["CL0001", "CL0002"]
    registry.save([RegisteredClaim(id="CL0001", text="First claim")])
    assert registry.allocate_ids(1) == ["CL0003"]
    assert [c.id for c in registry.load()] == ["CL0001"]


def test_create_signs_and_caches_text(store):
    """Test a capture writes payloads, a signature and the derived text."""
    record = store.create(
        "S001",
        "https://example.org/reports/housing-2024",
        {"raw.html": HOUSING_HTML},
        captured_at=CAPTURED_AT,
    )

    assert record.signature == compute_signature(
        "S001", record.url, CAPTURED_AT, [record.files["raw_html"].hash], TEST_SECRET
    )
    assert record.derived["content"].derived_from == "raw_html"
    assert record.text_artifact == record.derived["content"]
    assert store.load("S001").signature == record.signature
    text = store.load_text(record)
    assert "52% of tenants" in text
    assert "tracking" not in text


def test_create_refuses_existing_record(store):
    store.create("S001", "https://example.org/a", {"text.md": ASSISTANCE_TEXT})

    with pytest.raises(ValueError, match="already exists"):
        store.create("S001", "https://example.org/a", {"text.md": ASSISTANCE_TEXT})
    with pytest.raises(ValueError, match="payload"):
        store.create("S002", "https://example.org/b", {})


def test_read_file_stays_inside_evidence_directory(store, case_dir):
    store.create("S001", "https://example.org/a", {"text.md": ASSISTANCE_TEXT})
    (case_dir / "secret.txt").write_text("not evidence", encoding="utf-8")

    assert store.read_file("S001", "text.md") == ASSISTANCE_TEXT
    assert store.read_file("S001", "../../secret.txt") is None
    assert store.read_file("S001", "missing.md") is None


def test_load_rejects_non_object_metadata(store):
    directory = store.evidence_dir("S003")
    directory.mkdir(parents=True)
    (directory / "metadata.json").write_text("[]", encoding="utf-8")

    with pytest.raises(ValueError, match="not an object"):
        store.load("S003")
    assert store.load("S004") is None


def test_load_text_without_derived_artifact(store):
    record = store.create("S001", "https://example.org/a", {"text.md": ASSISTANCE_TEXT}, cache_text=False)

    assert record.derived == {}
    assert store.load_text(record).startswith("A regional study")


def test_append_derived_keeps_payload(store):
    """Test derived artifacts are added without touching payloads or signature."""
    record = store.create("S001", "https://example.org/a", {"text.md": ASSISTANCE_TEXT}, cache_text=False)

    updated = store.append_derived("S001", "summary", "summary.md", b"Short summary", "text_md")

    assert updated.signature == record.signature
    assert updated.files == record.files
    assert store.load("S001").derived["summary"].path == "summary.md"
    assert store.load("S001").derived["summary"].kind == "artifact"
    assert store.load_text(updated).startswith("A regional study")
    with pytest.raises(ValueError, match="already exists"):
        store.append_derived("S001", "summary", "summary-2.md", b"Again", "text_md")
    with pytest.raises(ValueError, match="cannot be replaced"):
        store.append_derived("S001", "text", "text.md", b"overwrite", "text_md")
    with pytest.raises(ValueError, match="Unknown payload"):
        store.append_derived("S001", "other", "other.md", b"x", "raw_html")
    with pytest.raises(ValueError, match="not found"):
        store.append_derived("S002", "other", "other.md", b"x", "text_md")


def test_workspace_capture_balances_ledger(workspace):
    """Test capture allocates, writes evidence and marks the source captured."""
    workspace.capture("https://example.org/reports/housing-2024", {"raw.html": HOUSING_HTML}, primary=True)

    entry = workspace.load_sources()["S001"]
    assert entry.captured
    assert entry.primary
    assert entry.evidence_path == "evidence/S001"
    assert workspace.list_evidence_ids() == ["S001"]
    assert audit_ledger(workspace.load_ledger()) == []


def test_workspace_control_files(workspace):
    """Test unreadable control files surface the way the pipeline expects."""
    control = workspace.control_dir
    (control / "gaps.d").mkdir(parents=True)
    (control / "gaps.d" / "a.json").write_text('{"gaps": []}', encoding="utf-8")
    (control / "gaps.d" / "b.json").write_text("{broken", encoding="utf-8")
    (control / "digest.json").write_text("{broken", encoding="utf-8")
    (control / "gaps.json").write_text("[]", encoding="utf-8")

    files = workspace.load_task_gap_files()
    assert files[0] == ("a.json", {"gaps": []})
    assert files[1][0] == "b.json"
    assert isinstance(files[1][1], ValueError)
    assert workspace.load_digest() is None
    with pytest.raises(ValueError):
        workspace.load_gap_report()
    assert workspace.load_audit_chain() is None
