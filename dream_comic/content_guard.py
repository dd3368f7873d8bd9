"""
Dream Comic — Content Guard.

Last check before a prompt reaches an image model. Anything that still
mentions people, bodies or pronouns after sanitizing is swapped for a
scenic, silhouette-only replacement built from the safe keywords it
contains (or a stock template when it has none).
"""

import logging
import random
import re
from typing import Optional

from dream_comic.config import FilterVocabulary, load_filter_vocabulary
from dream_comic.models import VECTOR_STYLE

logger = logging.getLogger(__name__)

MAX_FALLBACK_KEYWORDS = 4

FALLBACK_TEMPLATES = [
    f"Silhouette shape bursting through a doorway, SMASH! text, yellow orange background, {VECTOR_STYLE}",
    f"Dark shadow shape, lightning bolt, purple blue color blocks, {VECTOR_STYLE}",
    f"Explosion circle, BOOM! text, red orange shapes, {VECTOR_STYLE}",
    f"Silhouette shape with flowing cape, POW! text, gold blue background, {VECTOR_STYLE}",
]

_STANDALONE_I = re.compile(r"\bI\b")
_NON_WORD = re.compile(r"[^\w\s']")
_SPACES = re.compile(r"\s+")


class ContentGuard:
    """Decides whether a prompt is safe, and replaces it when it is not."""

    def __init__(
        self,
        vocabulary: Optional[FilterVocabulary] = None,
        rng: Optional[random.Random] = None,
    ):
        self.vocabulary = vocabulary or load_filter_vocabulary()
        self.rng = rng or random.Random()

    def _scan_text(self, text: str) -> str:
        """Lower-case, punctuation to spaces, padded, compounds removed."""
        scan = _NON_WORD.sub(" ", text.lower())
        scan = " " + _SPACES.sub(" ", scan).strip() + " "
        for compound in self.vocabulary.allowed_compounds:
            scan = scan.replace(compound, " ")
        return _SPACES.sub(" ", scan)

    def banned_terms_in(self, text: str) -> list[str]:
        """Banned terms present in text (after compound exemptions)."""
        scan = self._scan_text(text)
        found = [term for term in self.vocabulary.banned_terms if term in scan]
        if _STANDALONE_I.search(text):
            found.append("I")
        return found

    def is_clean(self, text: str) -> bool:
        return not self.banned_terms_in(text)

    def ensure_clean(self, text: str) -> str:
        """Return text unchanged if clean, otherwise a safe replacement."""
        found = self.banned_terms_in(text)
        if not found:
            return text
        logger.info(f"Prompt rejected (terms: {', '.join(t.strip() for t in found)}) - using fallback")
        return self.fallback(text)

    def fallback(self, text: str) -> str:
        """Build a silhouette-only scene. The result always passes is_clean."""
        # Substring match: "sunset" counts for sun, "glowing" for glow
        lowered = text.lower()
        phrases = []
        for keyword, phrase in self.vocabulary.safe_keywords.items():
            if keyword.lower() in lowered and phrase not in phrases and self.is_clean(phrase):
                phrases.append(phrase)
            if len(phrases) >= MAX_FALLBACK_KEYWORDS:
                break

        if phrases:
            candidate = f"Silhouette showing {', '.join(phrases)}, {VECTOR_STYLE}"
            if self.is_clean(candidate):
                return candidate

        first = self.rng.choice(FALLBACK_TEMPLATES)
        candidates = [first] + [t for t in FALLBACK_TEMPLATES if t != first]
        for candidate in candidates:
            if self.is_clean(candidate):
                return candidate

        # Only reachable when a custom vocabulary bans the stock templates
        logger.warning("All fallback templates rejected by filter config - scrubbing")
        return self._scrub(first)

    def _scrub(self, text: str) -> str:
        """Delete banned terms until the text is clean. Each pass shrinks it."""
        result = text
        while not self.is_clean(result):
            scan = self._scan_text(result)
            for term in self.vocabulary.banned_terms:
                scan = scan.replace(term, " ")
            result = _SPACES.sub(" ", scan).strip()
        return result
