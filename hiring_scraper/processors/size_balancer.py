"""
Size balancer for keeping every unit under the extraction payload limit.
"""

import logging
from typing import List

from ..models import Unit, byte_size

logger = logging.getLogger(__name__)

SENTENCE_BREAK = ". "
UNIT_SEPARATOR = "\n\n"

# Longest UTF-8 encoding of a single code point
MAX_CODE_POINT_SIZE = 4


def slice_by_bytes(text: str, size: int) -> List[str]:
    """
    Cut text into pieces of at most `size` UTF-8 bytes.

    Code points are never split, so a piece may end a few bytes short
    of the budget.

    Args:
        text: Text to slice
        size: Byte budget per piece

    Returns:
        Ordered pieces that concatenate back to text
    """
    pieces = []
    current, current_size = [], 0
    for char in text:
        char_size = len(char.encode("utf-8"))
        if current and current_size + char_size > size:
            pieces.append("".join(current))
            current, current_size = [], 0
        current.append(char)
        current_size += char_size
    if current:
        pieces.append("".join(current))
    return pieces


class SizeBalancer:
    """
    Splits oversized units and merges small neighbours.

    Both operations are deterministic and order-preserving:
    1. split() breaks one oversized posting at sentence boundaries
    2. merge() packs adjacent units greedily up to the maximum size

    Sizes are UTF-8 byte counts, the unit the extraction payload is
    limited in.
    """

    def __init__(self, max_unit_size: int, separator: str = UNIT_SEPARATOR):
        """
        Initialize the balancer.

        Args:
            max_unit_size: Maximum size of any emitted unit, in bytes
            separator: Joiner placed between merged units
        """
        if max_unit_size <= max(byte_size(separator), MAX_CODE_POINT_SIZE - 1):
            raise ValueError(f"max_unit_size is too small to hold a unit, got {max_unit_size}")
        self.max_unit_size = max_unit_size
        self.separator = separator
        self._separator_size = byte_size(separator)

    def split(self, text: str) -> List[str]:
        """
        Break an oversized posting into the fewest sentence-aligned pieces.

        Each sentence is terminated with "." before it is folded into the
        running piece; sentences are joined by a single space.

        Args:
            text: Posting text larger than max_unit_size

        Returns:
            Ordered list of pieces, each at most max_unit_size bytes
        """
        pieces = []
        current, current_size = "", 0

        for sentence in text.split(SENTENCE_BREAK):
            if not sentence:
                continue
            if not sentence.endswith("."):
                sentence += "."

            for part in self._hard_slice(sentence):
                part_size = byte_size(part)
                if current and current_size + 1 + part_size > self.max_unit_size:
                    pieces.append(current)
                    current, current_size = "", 0
                if current:
                    current, current_size = f"{current} {part}", current_size + 1 + part_size
                else:
                    current, current_size = part, part_size

        if current:
            pieces.append(current)

        logger.info(f"Split a {byte_size(text)} byte posting into {len(pieces)} pieces")
        return pieces

    def _hard_slice(self, sentence: str) -> List[str]:
        # A sentence longer than the limit cannot respect boundaries
        if byte_size(sentence) <= self.max_unit_size:
            return [sentence]
        return slice_by_bytes(sentence, self.max_unit_size)

    def merge(self, units: List[Unit]) -> List[Unit]:
        """
        Greedily combine adjacent units left to right.

        A unit is appended to the accumulator when the result stays within
        max_unit_size, otherwise the accumulator is flushed. Output units are
        re-indexed from zero.

        Args:
            units: Ordered units, none larger than max_unit_size

        Returns:
            Merged, re-indexed units
        """
        merged_texts = []
        current, current_size = None, 0

        for unit in units:
            if current is None:
                current, current_size = unit.text, unit.size
            elif current_size + self._separator_size + unit.size <= self.max_unit_size:
                current = f"{current}{self.separator}{unit.text}"
                current_size += self._separator_size + unit.size
            else:
                merged_texts.append(current)
                current, current_size = unit.text, unit.size

        if current is not None:
            merged_texts.append(current)

        if units:
            reduction = (len(units) - len(merged_texts)) / len(units) * 100
            logger.info(
                f"Merged {len(units)} units into {len(merged_texts)} "
                f"({reduction:.1f}% reduction, target {self.max_unit_size} bytes)"
            )

        return [Unit(index=i, text=text) for i, text in enumerate(merged_texts)]
