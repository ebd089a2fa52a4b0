"""
Segmentation module for cutting a normalized thread into units of work.
"""

import re
import logging
from typing import List

from .models import Unit, byte_size
from .processors import SizeBalancer
from .processors.size_balancer import slice_by_bytes

logger = logging.getLogger(__name__)

# Every top-level posting opens with its vote anchor
BOUNDARY_PATTERN = re.compile(r"<a id=up_\d+")


class BoundarySegmenter:
    """
    Splits cleaned thread text into units aligned to posting boundaries.

    When the text carries boundary markers, each posting becomes a unit,
    oversized postings are split and small neighbours merged. Without
    markers the structural assumption does not hold and the text is cut
    into fixed-size slices instead.
    """

    def __init__(self, max_unit_size: int, chunk_size: int = None, balancer: SizeBalancer = None):
        """
        Initialize the segmenter.

        Args:
            max_unit_size: Maximum size of any emitted unit, in UTF-8 bytes
            chunk_size: Slice size in bytes for the fallback path (default: max_unit_size)
            balancer: Size balancer to use (default: one built for max_unit_size)
        """
        self.max_unit_size = max_unit_size
        self.chunk_size = min(chunk_size or max_unit_size, max_unit_size)
        self.balancer = balancer or SizeBalancer(max_unit_size)

    def find_boundaries(self, text: str) -> List[int]:
        """Start offsets of every boundary marker."""
        return [m.start() for m in BOUNDARY_PATTERN.finditer(text)]

    def segment(self, text: str) -> List[Unit]:
        """
        Segment cleaned text into units.

        Args:
            text: Output of the markup normalizer

        Returns:
            Units indexed from zero, each at most max_unit_size long
        """
        if not text.strip():
            return []

        starts = self.find_boundaries(text)
        if not starts:
            logger.warning("No job posting boundaries found, using simple chunking")
            return self.simple_chunk(text)

        logger.info(f"Found {len(starts)} job postings to chunk")

        # Anything before the first marker is kept so no text is lost
        if starts[0] > 0:
            starts.insert(0, 0)
        ends = starts[1:] + [len(text)]

        postings = []
        for start, end in zip(starts, ends):
            posting = text[start:end]
            if byte_size(posting) > self.max_unit_size:
                postings.extend(self.balancer.split(posting))
            else:
                postings.append(posting)

        units = [Unit(index=i, text=posting) for i, posting in enumerate(postings)]
        return self.balancer.merge(units)

    def simple_chunk(self, text: str) -> List[Unit]:
        """Fixed-size slicing used when no posting boundaries exist."""
        return [Unit(index=i, text=piece) for i, piece in enumerate(slice_by_bytes(text, self.chunk_size))]
