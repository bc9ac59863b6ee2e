"""Domain models for citations and URL bindings."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Citation(BaseModel):
    """One logical citation: every occurrence of the same marker in a narrative."""

    source_id: str = Field(..., description="Cited source identifier")
    lines: List[int] = Field(default_factory=list, description="Lines where the marker occurs")
    urls: List[str] = Field(default_factory=list, description="Distinct inline URLs, in order of appearance")

    @property
    def url(self) -> Optional[str]:
        """First inline URL carried by any occurrence."""
        return self.urls[0] if self.urls else None

    @property
    def first_line(self) -> int:
        return self.lines[0] if self.lines else 0


class BindingStatus(str, Enum):
    """Result of comparing the URLs known for a citation."""

    MATCH = "match"
    MISMATCH = "mismatch"
    INSUFFICIENT_DATA = "insufficient-data"
    ORPHAN = "orphan"


class BoundUrl(BaseModel):
    """A URL from one of the three places a citation is described."""

    origin: str = Field(..., description="citation, registry or metadata")
    raw: str = Field(..., description="URL as written")
    normalized: str = Field(..., description="URL after normalization")

    class Config:
        """Pydantic model configuration."""
        frozen = True


class UrlDisagreement(BaseModel):
    """One disagreeing pair of bound URLs."""

    left: BoundUrl
    right: BoundUrl

    def describe(self) -> str:
        return (
            f"{self.left.origin} '{self.left.raw}' (normalized '{self.left.normalized}') != "
            f"{self.right.origin} '{self.right.raw}' (normalized '{self.right.normalized}')"
        )


class BindingRecord(BaseModel):
    """Per-citation URL triple and its pairwise match result."""

    source_id: str
    status: BindingStatus
    urls: List[BoundUrl] = Field(default_factory=list)
    disagreements: List[UrlDisagreement] = Field(default_factory=list)
