"""
Shared data models for the extraction pipeline.
"""

from typing import Dict, List, Optional
from dataclasses import dataclass, field


def byte_size(text: str) -> int:
    """UTF-8 encoded length of text."""
    return len(text.encode("utf-8"))


@dataclass(frozen=True)
class Unit:
    """An index-tagged slice of normalized thread text."""

    index: int
    text: str

    @property
    def size(self) -> int:
        """Size of the unit as sent to the extraction service (UTF-8 bytes)."""
        return byte_size(self.text)


@dataclass
class ExtractionOutcome:
    """Result of running one Unit through the extraction service."""

    index: int
    content: str = ""
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class CompiledArtifact:
    """Ordered concatenation of every non-empty extraction result."""

    text: str
    included_indices: List[int] = field(default_factory=list)
    skipped_indices: List[int] = field(default_factory=list)
    location: Optional[str] = None

    def to_bytes(self) -> bytes:
        return self.text.encode("utf-8")


@dataclass
class RunReport:
    """Summary of one pipeline run over a list of pages."""

    pages_fetched: int = 0
    failed_pages: Dict[str, str] = field(default_factory=dict)
    units_total: int = 0
    units_filtered_out: int = 0
    failed_outcomes: List[ExtractionOutcome] = field(default_factory=list)
    artifact: Optional[CompiledArtifact] = None

    @property
    def complete(self) -> bool:
        """False when any page or unit failed, even if an artifact exists."""
        return not self.failed_pages and not self.failed_outcomes

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "pages_fetched": self.pages_fetched,
            "failed_pages": dict(self.failed_pages),
            "units_total": self.units_total,
            "units_filtered_out": self.units_filtered_out,
            "failed_units": {
                outcome.index: f"{type(outcome.error).__name__}: {outcome.error}"
                for outcome in self.failed_outcomes
            },
            "artifact": self.artifact.location if self.artifact else None,
            "complete": self.complete,
        }
