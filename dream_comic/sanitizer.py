"""
Dream Comic — Prompt Sanitizer.

Strips first-person voice, human identity nouns and common given names
from scene descriptions so the image model only ever sees abstract,
identity-free scenes. Rules are applied in order: multi-word phrases
before the bare pronouns they contain.
"""

import logging
import re

logger = logging.getLogger(__name__)

APOSTROPHE = "['’]"

FIRST_PERSON_PHRASES = [
    "I am", "I was", "I have", "I had", "I feel", "I felt",
    "I see", "I saw", "I walk", "I walked", "I run", "I ran",
    "I stand", "I stood", "I look", "I looked", "I find", "I found",
    "I know", "I knew", "I think", "I thought", "I want", "I wanted",
    "I need", "I needed", "I can", "I could", "I will", "I would",
]

FIRST_PERSON_CONTRACTIONS = ["I'm", "I've", "I'd", "I'll"]

PLURAL_PHRASES = ["we are", "we were", "we have", "we had"]

PLURAL_CONTRACTIONS = ["we're", "we've", "we'll", "we'd"]

HUMAN_NOUNS = [
    "man", "woman", "person", "people", "boy", "girl", "child", "children",
    "human", "humans", "face", "faces", "hand", "hands", "body", "bodies",
    "finger", "fingers", "arm", "arms", "leg", "legs", "head", "heads",
    "mother", "father", "parent", "parents", "mom", "dad", "brother", "sister",
    "friend", "friends", "family", "families",
    "someone", "anyone", "everyone", "nobody", "somebody", "anybody", "everybody",
]

COMMON_NAMES = [
    "John", "Sarah", "Mike", "Mary", "David", "Emma", "James", "Lisa",
    "Tom", "Ann", "Bob", "Jane", "Mom", "Dad", "Mommy", "Daddy",
    "Grandma", "Grandpa", "Nana", "Papa",
]

# Narrative-level rewrites applied to a whole story before it is sent
# to the text model: keep the sentence, lose the narrator.
STORY_REWRITES = [
    ("I was", "The scene was"),
    ("I am", "The moment is"),
    ("I felt", "There was a feeling of"),
    ("I see", "Visible in the scene"),
    ("I saw", "Appearing in view"),
    ("I walked", "A path led through"),
    ("I ran", "Motion swept across"),
    ("I flew", "Soaring through"),
    ("I found", "Discovered within"),
    ("I noticed", "Revealed in the light"),
    ("I heard", "Sounds echoed through"),
    ("I", ""),
    ("me", ""),
    ("my", "the"),
    ("mine", ""),
    ("myself", ""),
    ("we", ""),
    ("us", ""),
    ("our", "the"),
]


def _word_pattern(phrase: str, whole_token: bool = False) -> re.Pattern:
    """
    Case-insensitive whole-word pattern; spaces match any whitespace run.

    whole_token also refuses a match followed by an apostrophe, so "I can"
    leaves "I can't" alone.
    """
    parts = [re.escape(word) for word in phrase.split()]
    body = r"\s+".join(parts).replace("'", APOSTROPHE)
    tail = rf"(?!{APOSTROPHE})" if whole_token else ""
    return re.compile(rf"\b{body}\b{tail}", re.IGNORECASE)


def _build_scene_rules() -> list[tuple[re.Pattern, str]]:
    rules = []
    for phrase in FIRST_PERSON_PHRASES:
        rules.append((_word_pattern(phrase, whole_token=True), ""))
    for phrase in FIRST_PERSON_CONTRACTIONS:
        rules.append((_word_pattern(phrase), ""))
    rules += [
        (_word_pattern("my own"), ""),
        (_word_pattern("my"), "the"),
        (_word_pattern("mine"), ""),
        (_word_pattern("myself"), ""),
        (_word_pattern("me"), ""),
        (_word_pattern("I"), ""),
    ]
    for phrase in PLURAL_PHRASES:
        rules.append((_word_pattern(phrase, whole_token=True), ""))
    for phrase in PLURAL_CONTRACTIONS:
        rules.append((_word_pattern(phrase), ""))
    rules += [
        (_word_pattern("our"), "the"),
        (_word_pattern("ours"), ""),
        (_word_pattern("ourselves"), ""),
        (_word_pattern("us"), ""),
        (_word_pattern("we"), ""),
    ]
    for noun in HUMAN_NOUNS:
        rules.append((_word_pattern(noun), ""))
    for name in COMMON_NAMES:
        rules.append((_word_pattern(name), ""))
    return rules


SCENE_RULES = _build_scene_rules()
STORY_RULES = [(_word_pattern(src), dst) for src, dst in STORY_REWRITES]


def cleanup(text: str) -> str:
    """Collapse the whitespace and punctuation debris left by deletions."""
    previous = None
    while text != previous:
        previous = text
        text = re.sub(r"\s+", " ", text)
        text = re.sub(r"\s+([,.!?;:])", r"\1", text)
        text = re.sub(r",{2,}", ",", text)
        text = re.sub(r"\.{2,}", ".", text)
        text = text.replace(",.", ".")
        text = re.sub(r"^[\s,.;:!?]+", "", text)
        text = text.strip()
    return text


class PromptSanitizer:
    """Rule-based rewrite of scene text. Deterministic and idempotent."""

    def __init__(self, rules: list[tuple[re.Pattern, str]] = None):
        self.rules = rules if rules is not None else SCENE_RULES

    def sanitize(self, text: str) -> str:
        """Strip identity cues from one scene description."""
        if not text:
            return ""
        result = text
        for pattern, replacement in self.rules:
            result = pattern.sub(replacement, result)
        result = cleanup(result)
        if result != text:
            logger.debug(f"Sanitized scene: {text[:60]!r} -> {result[:60]!r}")
        return result

    def preprocess_story(self, story: str) -> str:
        """Rewrite a first-person story into narrator-free prose."""
        if not story:
            return ""
        result = story
        for pattern, replacement in STORY_RULES:
            result = pattern.sub(replacement, result)
        return cleanup(result)
