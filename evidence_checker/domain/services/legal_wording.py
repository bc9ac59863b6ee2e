"""Wording checks for allegations. Flags patterns only, no legal reasoning."""

import re
from typing import List, Optional

from ..models.gap import Gap, GapTarget, GapType

ACCUSATORY = re.compile(
    r"\b(fraud\w*|embezzl\w*|brib\w*|stole|steal\w*|lied|liars?|criminal\w*|corrupt\w*|"
    r"launder\w*|cover-?up|extort\w*|scam\w*)\b",
    re.IGNORECASE,
)
ATTRIBUTION = re.compile(
    r"\b(alleg\w*|according to|accus\w*|charged|convicted|pleaded|said|says|stated|"
    r"reported\w*|court|indict\w*|lawsuit|complaint|claimed|investigat\w*|prosecutors?)\b",
    re.IGNORECASE,
)
SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
REVIEW_BLOCKED = re.compile(r"\bNOT\s+READY\b")


class LegalWordingChecker:
    """Finds unattributed allegations and reads the legal review verdict."""

    def __init__(self, require_review: bool = False):
        """Initialize the checker.

        Args:
            require_review: Emit a gap when no legal review exists
        """
        self._require_review = require_review

    def check_narrative(self, text: str, file_name: str = "narrative") -> List[Gap]:
        gaps: List[Gap] = []
        for line_no, line in enumerate(text.splitlines(), start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith(("#", "|", "```")):
                continue
            for sentence in SENTENCE_SPLIT.split(stripped):
                term = ACCUSATORY.search(sentence)
                if term and not ATTRIBUTION.search(sentence):
                    gaps.append(Gap.create(
                        GapType.UNATTRIBUTED_ALLEGATION,
                        f"'{term.group(0)}' is stated as fact without attribution: '{sentence[:100]}'",
                        GapTarget(file=file_name, line=line_no),
                    ))
                    break
        return gaps

    def check_review(self, review: Optional[str]) -> List[Gap]:
        target = GapTarget(file="legal-review.md")
        if review is None:
            if self._require_review:
                return [Gap.create(GapType.LEGAL_REVIEW_MISSING, "No legal review has been written", target)]
            return []
        if REVIEW_BLOCKED.search(review):
            return [Gap.create(
                GapType.LEGAL_REVIEW_BLOCKED,
                "Legal review marks the narrative NOT READY for publication",
                target,
            )]
        return []
