"""Claim corroboration registry: policy evaluation and lifecycle status."""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from ..models.claim import (
    ClaimRecord,
    ClaimStatus,
    CorroborationPolicy,
    CorroborationStatus,
    IndependenceRule,
    RegisteredClaim,
    normalize_claim_text,
)
from ..models.evidence import SourceEntry
from ..models.gap import Gap, GapTarget, GapType
from .statistics import extract_statistics
from .url_normalizer import root_domain

logger = logging.getLogger(__name__)


@dataclass
class CorroborationResult:
    """Derived status of one registered claim."""

    status: CorroborationStatus
    supporting: List[str]
    counter: List[str]
    independent_domains: int
    reason: str = ""


class CorroborationRegistry:
    """Derives claim status from the current evidence; status is never authored."""

    def __init__(self, default_policy: Optional[CorroborationPolicy] = None):
        """Initialize the registry.

        Args:
            default_policy: Policy given to claims registered from the narrative
        """
        self._default_policy = default_policy or CorroborationPolicy()

    def evaluate(
        self,
        claim: RegisteredClaim,
        supporting: List[str],
        counter: List[str],
        sources: Dict[str, SourceEntry],
    ) -> CorroborationResult:
        """Evaluate a claim's policy against its currently supporting sources.

        Args:
            claim: Registered claim carrying the policy
            supporting: Sources whose claim verification is verified
            counter: Sources recorded or verified as contradicting the claim
            sources: Source registry

        Returns:
            Corroboration result
        """
        supporting = sorted(set(supporting))
        counter = sorted(set(counter))
        policy = claim.policy

        domains = {
            root_domain(sources[sid].url)
            for sid in supporting
            if sid in sources and root_domain(sources[sid].url)
        }
        primary = [sid for sid in supporting if sid in sources and sources[sid].primary]

        if counter:
            return CorroborationResult(
                CorroborationStatus.CONTRADICTED, supporting, counter, len(domains),
                f"counter-evidence from {', '.join(counter)}",
            )
        if not supporting:
            return CorroborationResult(
                CorroborationStatus.PENDING, supporting, counter, 0, "no verified support yet",
            )

        by_domain = len(domains) >= policy.min_sources
        by_primary = (
            len(supporting) >= policy.min_sources
            and bool(primary)
            and len(primary) < len(supporting)
        )
        if policy.independence_rule == IndependenceRule.DIFFERENT_ROOT_DOMAIN:
            satisfied = by_domain
        elif policy.independence_rule == IndependenceRule.PRIMARY_PLUS_SECONDARY:
            satisfied = by_primary
        else:
            satisfied = by_domain or by_primary
        if policy.requires_primary and not primary:
            satisfied = False

        if satisfied:
            return CorroborationResult(
                CorroborationStatus.VERIFIED, supporting, counter, len(domains),
            )
        reason = (
            f"{len(supporting)} supporting source(s) across {len(domains)} root domain(s); "
            f"policy needs {policy.min_sources} under {policy.independence_rule.value}"
        )
        if policy.requires_primary and not primary:
            reason += " and a primary source"
        return CorroborationResult(
            CorroborationStatus.INSUFFICIENT, supporting, counter, len(domains), reason,
        )

    def synchronize(
        self,
        registered: List[RegisteredClaim],
        narrative_claims: List[str],
        allocate_ids: Callable[[int], List[str]],
    ) -> List[RegisteredClaim]:
        """Match narrative claim texts to registered claims by normalized text.

        New texts get freshly allocated ids, registered claims whose text is gone
        from the narrative become superseded. Order: existing claims by id, then
        new ones in narrative order.
        """
        active_texts: Dict[str, str] = {}
        for text in narrative_claims:
            active_texts.setdefault(normalize_claim_text(text), text)

        existing = {claim.normalized_text: claim for claim in registered}
        new_texts = [key for key in active_texts if key not in existing]
        new_ids = allocate_ids(len(new_texts)) if new_texts else []

        synced: List[RegisteredClaim] = []
        for claim in sorted(registered, key=lambda c: c.id):
            if claim.normalized_text not in active_texts:
                claim = claim.model_copy(update={"status": CorroborationStatus.SUPERSEDED})
            elif claim.status == CorroborationStatus.SUPERSEDED:
                claim = claim.model_copy(update={"status": CorroborationStatus.PENDING})
            synced.append(claim)

        for claim_id, key in zip(new_ids, new_texts):
            text = active_texts[key]
            synced.append(RegisteredClaim(
                id=claim_id,
                text=text,
                type="statistical" if extract_statistics(text) else "factual",
                policy=self._default_policy,
            ))
        if new_ids:
            logger.info(f"📝 Registered {len(new_ids)} new claim(s): {', '.join(new_ids)}")
        return synced

    def evaluate_all(
        self,
        registered: List[RegisteredClaim],
        records: List[ClaimRecord],
        sources: Dict[str, SourceEntry],
    ) -> Tuple[List[RegisteredClaim], List[Gap]]:
        """Recompute status for every registered claim and emit corroboration gaps."""
        support: Dict[str, List[str]] = {}
        contradicting: Dict[str, List[str]] = {}
        for record in records:
            key = normalize_claim_text(record.text)
            if record.status == ClaimStatus.VERIFIED:
                support.setdefault(key, []).append(record.source_id)
            elif record.status == ClaimStatus.CONTRADICTED:
                contradicting.setdefault(key, []).append(record.source_id)

        updated: List[RegisteredClaim] = []
        gaps: List[Gap] = []
        for claim in registered:
            if claim.status == CorroborationStatus.SUPERSEDED:
                updated.append(claim)
                continue
            key = claim.normalized_text
            result = self.evaluate(
                claim,
                support.get(key, []),
                list(claim.counter_sources) + contradicting.get(key, []),
                sources,
            )
            updated.append(claim.model_copy(update={
                "status": result.status,
                "supporting_sources": result.supporting,
            }))
            gap = self._gap_for(claim, result)
            if gap is not None:
                gaps.append(gap)
        return updated, gaps

    @staticmethod
    def _gap_for(claim: RegisteredClaim, result: CorroborationResult) -> Optional[Gap]:
        target = GapTarget(claim_id=claim.id)
        if result.status == CorroborationStatus.CONTRADICTED:
            return Gap.create(
                GapType.CORROBORATION_CONTRADICTED,
                f"{claim.id} '{claim.text[:80]}' has {result.reason}",
                target,
            )
        if result.status == CorroborationStatus.INSUFFICIENT:
            return Gap.create(
                GapType.INSUFFICIENT_CORROBORATION,
                f"{claim.id} '{claim.text[:80]}': {result.reason}",
                target,
            )
        return None
