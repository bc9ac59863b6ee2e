"""Aggregation of verifier output into one stable, deduplicated gap set."""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from ..models.gap import Gap, GapTarget, GapType

logger = logging.getLogger(__name__)


class GapGenerator:
    """Builds the gap set for a run.

    Severity is re-derived from the type table here so every gap passes through
    the same place where configured overrides apply.
    """

    def __init__(self, severity_overrides: Optional[Mapping[str, str]] = None):
        """Initialize the generator.

        Args:
            severity_overrides: gap type value -> severity value
        """
        self._overrides = dict(severity_overrides or {})

    def generate(self, *gap_lists: Iterable[Gap]) -> List[Gap]:
        """Union, re-derive severity, dedupe by (type, target) and sort."""
        unique: Dict[Tuple[str, str], Gap] = {}
        for gaps in gap_lists:
            for gap in gaps:
                if gap.identity in unique:
                    continue
                unique[gap.identity] = Gap.create(gap.type, gap.message, gap.target, self._overrides)
        result = sorted(unique.values(), key=lambda g: g.sort_key())
        logger.info(
            f"📊 {len(result)} gap(s), {sum(1 for g in result if g.is_blocking)} blocking"
        )
        return result

    def merge_task_files(self, files: List[Tuple[str, Any]]) -> List[Gap]:
        """Fold per-task gap files into gap records.

        Each file holds ``{"gaps": [{"type", "message", "target"}]}`` or a bare
        list. Unknown types and unreadable files become state-inconsistent gaps.
        """
        gaps: List[Gap] = []
        for name, data in files:
            target = GapTarget(file=name)
            if isinstance(data, Exception):
                gaps.append(Gap.create(
                    GapType.STATE_INCONSISTENT,
                    f"Task gap file {name} could not be read: {data}",
                    target,
                ))
                continue
            items = data.get("gaps", []) if isinstance(data, dict) else data
            if not isinstance(items, list):
                gaps.append(Gap.create(
                    GapType.STATE_INCONSISTENT,
                    f"Task gap file {name} does not contain a gap list",
                    target,
                ))
                continue
            for index, item in enumerate(items):
                gap = self._parse_item(name, index, item)
                gaps.append(gap)
        return gaps

    @staticmethod
    def _parse_item(name: str, index: int, item: Any) -> Gap:
        try:
            gap_type = GapType(item["type"])
            item_target = GapTarget(**(item.get("target") or {}))
            message = str(item.get("message") or gap_type.value)
        except (KeyError, TypeError, ValueError, ValidationError, AttributeError) as e:
            logger.warning(f"⚠️ Rejected entry {index} of {name}: {e}")
            return Gap.create(
                GapType.STATE_INCONSISTENT,
                f"Entry {index} of task gap file {name} is not a valid gap: {e}",
                GapTarget(file=f"{name}#{index}"),
            )
        return Gap.create(gap_type, message, item_target)
