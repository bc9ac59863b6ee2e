"""Three-way URL binding between citation, source registry and capture."""

import logging
from itertools import combinations
from typing import List, Optional, Tuple

from ..models.citation import BindingRecord, BindingStatus, BoundUrl, Citation, UrlDisagreement
from ..models.evidence import EvidenceRecord, SourceEntry
from ..models.gap import Gap, GapTarget, GapType
from .url_normalizer import normalize_url

logger = logging.getLogger(__name__)


class BindingVerifier:
    """Checks that every place a citation's URL is recorded agrees."""

    def verify(
        self,
        citation: Citation,
        entry: Optional[SourceEntry],
        record: Optional[EvidenceRecord],
    ) -> Tuple[BindingRecord, List[Gap]]:
        """Compare the URLs known for one citation.

        Args:
            citation: Logical citation from the narrative
            entry: Source registry entry, None when unregistered
            record: Captured evidence record, None when not captured

        Returns:
            Binding record and the gaps it produced
        """
        sid = citation.source_id
        target = GapTarget(source_id=sid, line=citation.first_line)

        if entry is None:
            return (
                BindingRecord(source_id=sid, status=BindingStatus.ORPHAN),
                [Gap.create(
                    GapType.ORPHAN_CITATION,
                    f"Narrative cites {sid} (line {citation.first_line}) but the source registry has no entry for it",
                    target,
                )],
            )

        gaps: List[Gap] = []
        if record is None:
            gaps.append(Gap.create(
                GapType.MISSING_EVIDENCE,
                f"{sid} is registered but has no captured evidence",
                GapTarget(source_id=sid),
            ))

        bound = self._collect(citation, entry, record)
        if len(bound) < 2:
            gaps.append(Gap.create(
                GapType.BINDING_INSUFFICIENT_DATA,
                f"{sid} has {len(bound)} known URL(s); at least two are needed to confirm the binding",
                target,
            ))
            return BindingRecord(source_id=sid, status=BindingStatus.INSUFFICIENT_DATA, urls=bound), gaps

        disagreements = [
            UrlDisagreement(left=left, right=right)
            for left, right in combinations(bound, 2)
            if left.normalized != right.normalized
        ]
        if not disagreements:
            return BindingRecord(source_id=sid, status=BindingStatus.MATCH, urls=bound), gaps

        details = "; ".join(d.describe() for d in disagreements)
        logger.info(f"⚠️ URL mismatch for {sid}: {details}")
        gaps.append(Gap.create(
            GapType.URL_MISMATCH,
            f"{sid} URLs disagree: {details}",
            target,
        ))
        return (
            BindingRecord(
                source_id=sid,
                status=BindingStatus.MISMATCH,
                urls=bound,
                disagreements=disagreements,
            ),
            gaps,
        )

    @staticmethod
    def _collect(
        citation: Citation,
        entry: SourceEntry,
        record: Optional[EvidenceRecord],
    ) -> List[BoundUrl]:
        candidates = [("citation", url) for url in citation.urls]
        candidates.append(("registry", entry.url))
        if record is not None:
            candidates.append(("metadata", record.url))

        bound = []
        for origin, raw in candidates:
            normalized = normalize_url(raw)
            if normalized is not None:
                bound.append(BoundUrl(origin=origin, raw=raw, normalized=normalized))
        return bound
