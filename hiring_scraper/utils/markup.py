"""
HTML utility functions for turning a raw thread page into plain posting text.
"""

import re
import logging
from typing import List, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag

logger = logging.getLogger(__name__)

# (pattern, replacement) pairs applied in order to the rendered page.
NORMALIZATION_RULES: List[Tuple[str, str]] = [
    # Vote links become the compact marker that opens every posting
    (r'<a\s[^>]*?\bid="(up_\d+)"[^>]*>', r"<a id=\1>"),
    (r'</?(?:html|body|center|table|tbody|thead|tr|td|th|div|p|i|pre|code)\b[^>]*>', " "),
    (r'\s(?:rel|class|style|aria-hidden|title)="[^"]*"', ""),
    (r"\d+ points? by \S+ \d+ (?:minutes?|hours?|days?|months?|years?) ago", ""),
    (r"(?:\s*\|\s*(?:hide|past|favorite|discuss|\d+(?:&nbsp;|\xa0)comments?)\b)+", ""),
    (r"\s+", " "),
]

# Markup that never carries posting content
DROPPED_TAGS = ["head", "script", "style"]
STRIPPED_TAGS = ["span", "br", "img", "form", "u", "font"]

REPLY_MARKER = "parent"


def compile_rules(rules: List[Tuple[str, str]]) -> List[Tuple[re.Pattern, str]]:
    return [(re.compile(pattern), replacement) for pattern, replacement in rules]


def apply_rule(text: str, rule: Tuple[re.Pattern, str]) -> str:
    """Apply a single compiled normalization rule."""
    pattern, replacement = rule
    return pattern.sub(replacement, text)


class MarkupNormalizer:
    """
    Strips non-content markup and boilerplate from a thread page.

    The pass runs in two phases:
    1. Tree cleanup with BeautifulSoup (reply rows, chrome elements)
    2. The ordered NORMALIZATION_RULES table over the rendered markup
    """

    def __init__(
        self,
        rules: List[Tuple[str, str]] = None,
        reply_marker: str = REPLY_MARKER,
    ):
        """
        Initialize the normalizer.

        Args:
            rules: Override for NORMALIZATION_RULES
            reply_marker: Text identifying a nested reply row
        """
        self.rules = compile_rules(rules if rules is not None else NORMALIZATION_RULES)
        # Whole word, so "parental leave" in a posting does not count
        self.reply_marker = re.compile(rf"\b{re.escape(reply_marker)}\b", re.IGNORECASE)

    def normalize(self, html: str) -> str:
        """
        Clean a raw HTML document.

        Args:
            html: Raw page markup

        Returns:
            Single cleaned string with boundary markers preserved
        """
        soup = BeautifulSoup(html, "html.parser")

        for name in DROPPED_TAGS:
            for node in soup.find_all(name):
                node.decompose()

        removed = self._remove_reply_rows(soup)
        if removed:
            logger.info(f"Removed {removed} nested reply rows")

        for name in STRIPPED_TAGS:
            for node in soup.find_all(name):
                # Nested matches are already gone with their parent
                if not node.decomposed:
                    node.decompose()

        text = str(soup)
        for rule in self.rules:
            text = apply_rule(text, rule)

        cleaned = text.strip()
        logger.info(f"Normalized {len(html)} characters of markup into {len(cleaned)}")
        return cleaned

    def _remove_reply_rows(self, soup: BeautifulSoup) -> int:
        """Remove every <tr> whose own text carries the reply marker."""
        removed = 0
        # Document order: an outer row is judged before the rows nested in it
        for row in soup.find_all("tr"):
            if row.decomposed:
                continue
            if self.reply_marker.search(self._direct_text(row)):
                row.decompose()
                removed += 1
        return removed

    @staticmethod
    def _direct_text(row: Tag) -> str:
        """
        Text that belongs to this row rather than to rows nested inside it.

        Collects the row's own text nodes plus the text of child elements
        that contain no nested <tr>.
        """
        parts = []
        for child in row.children:
            if isinstance(child, NavigableString):
                parts.append(str(child))
            elif isinstance(child, Tag) and child.name not in ("tr", "table"):
                if child.find("tr") is None:
                    parts.append(child.get_text(" "))
        return " ".join(parts)
