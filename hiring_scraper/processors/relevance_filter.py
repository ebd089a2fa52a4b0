import logging
from typing import Iterable, List

from ..models import Unit

logger = logging.getLogger(__name__)


class RelevanceFilter:
    """Keeps units that mention at least one interest keyword."""

    def __init__(self, keywords: Iterable[str]):
        self.keywords = [k.lower() for k in keywords if k]
        if not self.keywords:
            raise ValueError("RelevanceFilter needs at least one keyword")

    def matches(self, unit: Unit) -> List[str]:
        """Keywords found in the unit (case-insensitive substring match)."""
        text = unit.text.lower()
        return [k for k in self.keywords if k in text]

    def filter(self, units: List[Unit]) -> List[Unit]:
        """
        Drop units without any keyword. Order and original indices are kept.

        Args:
            units: Candidate units

        Returns:
            Surviving units
        """
        kept = []
        for unit in units:
            found = self.matches(unit)
            if found:
                kept.append(unit)
                logger.debug(f"Unit {unit.index} accepted: found keywords {found}")
            else:
                logger.debug(f"Unit {unit.index} rejected: no interest keywords found")

        rejected = len(units) - len(kept)
        if units:
            logger.info(
                f"Filtering complete: {len(kept)} units accepted, {rejected} rejected "
                f"({rejected / len(units) * 100:.1f}% reduction)"
            )
        return kept
