"""Ledger integrity: sequential ids and balanced lock/unlock pairs."""

import re
from typing import Dict, List

from ..models.audit import LedgerEvent, LedgerEventType
from ..models.gap import Gap, GapTarget, GapType

LEDGER_FILE = "ledger.json"
LEDGER_ID = re.compile(r"^L(\d+)$")


def audit_ledger(events: List[LedgerEvent]) -> List[Gap]:
    """Check a ledger for id problems and unmatched locks."""
    gaps: List[Gap] = []

    seen = set()
    numbers = []
    for event in events:
        match = LEDGER_ID.match(event.id)
        if not match:
            gaps.append(Gap.create(
                GapType.LEDGER_INTEGRITY,
                f"Ledger entry id '{event.id}' is not in the L### format",
                GapTarget(file=f"{LEDGER_FILE}#{event.id}"),
            ))
            continue
        if event.id in seen:
            gaps.append(Gap.create(
                GapType.LEDGER_INTEGRITY,
                f"Ledger entry id {event.id} appears more than once",
                GapTarget(file=f"{LEDGER_FILE}#{event.id}"),
            ))
        seen.add(event.id)
        numbers.append(int(match.group(1)))

    missing = sorted(set(range(1, max(numbers) + 1)) - set(numbers)) if numbers else []
    if missing:
        gaps.append(Gap.create(
            GapType.LEDGER_INTEGRITY,
            f"Ledger ids skip {len(missing)} number(s), first missing L{missing[0]:03d}",
            GapTarget(file=LEDGER_FILE),
        ))

    held: Dict[str, str] = {}
    for event in events:
        if event.event == LedgerEventType.FILE_LOCK:
            if event.target in held:
                gaps.append(Gap.create(
                    GapType.UNBALANCED_LOCK,
                    f"{event.id} locks '{event.target}' while {held[event.target]} still holds it",
                    GapTarget(file=f"{event.target}#{event.id}"),
                ))
            held[event.target] = event.id
        elif event.event == LedgerEventType.FILE_UNLOCK:
            if event.target not in held:
                gaps.append(Gap.create(
                    GapType.UNBALANCED_LOCK,
                    f"{event.id} unlocks '{event.target}' which is not locked",
                    GapTarget(file=f"{event.target}#{event.id}"),
                ))
            held.pop(event.target, None)

    for target, lock_id in sorted(held.items()):
        gaps.append(Gap.create(
            GapType.UNBALANCED_LOCK,
            f"{lock_id} locked '{target}' and it was never unlocked",
            GapTarget(file=f"{target}#{lock_id}"),
        ))
    return gaps
