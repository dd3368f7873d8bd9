"""
Dream Comic — Scene Classifier.

Maps a sanitized prompt to an archetype, a palette and a sound effect
for the placeholder renderer. First matching keyword group wins.
"""

import re

from dream_comic.models import ClassifiedScene, ImageStyle, Palette, SceneArchetype

# UIKit system colors, so placeholders match the app's look
GREEN = (52, 199, 89)
BLACK = (0, 0, 0)
RED = (255, 59, 48)
YELLOW = (255, 204, 0)
ORANGE = (255, 149, 0)
BLUE = (0, 122, 255)
INDIGO = (88, 86, 214)
PURPLE = (175, 82, 222)
CYAN = (50, 173, 230)
PINK = (255, 45, 85)
WHITE = (255, 255, 255)
GRAY5 = (229, 229, 234)

# Order matters: "dark monster" is a monster, not a shadow
ARCHETYPE_KEYWORDS = [
    (SceneArchetype.MONSTER, ("monster", "beast", "creature")),
    (SceneArchetype.HERO, ("hero", "triumph", "victory")),
    (SceneArchetype.SHADOW, ("shadow", "dark", "villain")),
    (SceneArchetype.ACTION, ("door", "burst", "break")),
    (SceneArchetype.FLYING, ("fly", "soar", "sky")),
    (SceneArchetype.CHASE, ("escape", "run", "chase")),
]

ARCHETYPE_PALETTES = {
    SceneArchetype.MONSTER: Palette(GREEN, BLACK, RED),
    SceneArchetype.HERO: Palette(YELLOW, ORANGE, BLUE),
    SceneArchetype.SHADOW: Palette(INDIGO, BLACK, PURPLE),
    SceneArchetype.ACTION: Palette(ORANGE, YELLOW, RED),
    SceneArchetype.FLYING: Palette(CYAN, BLUE, RED),
    SceneArchetype.CHASE: Palette(RED, ORANGE, BLACK),
}

GENERIC_PALETTES = {
    ImageStyle.COMIC_BOOK: Palette(YELLOW, ORANGE, RED),
    ImageStyle.POP_ART: Palette(RED, PINK, YELLOW),
    ImageStyle.GRAPHIC_NOVEL: Palette(BLUE, INDIGO, WHITE),
    ImageStyle.LINE_ART: Palette(WHITE, GRAY5, BLACK),
}

DEFAULT_SOUND_EFFECTS = {
    SceneArchetype.MONSTER: "ROAR!",
    SceneArchetype.HERO: "POW!",
    SceneArchetype.SHADOW: "DOOM!",
    SceneArchetype.ACTION: "SMASH!",
    SceneArchetype.FLYING: "WHOOSH!",
    SceneArchetype.CHASE: "ZOOM!",
    SceneArchetype.GENERIC: "BAM!",
}

SOUND_EFFECTS = [
    "BOOM!", "BAM!", "SMASH!", "POW!", "CRASH!",
    "ZWIFF!", "BANG!", "KRAKOOM!", "WHOOSH!", "SLAM!",
]

_EFFECT_PATTERNS = [
    (re.compile(rf"\b{effect.rstrip('!')}\b"), effect) for effect in SOUND_EFFECTS
]


def classify_archetype(prompt: str) -> SceneArchetype:
    text = prompt.lower()
    for archetype, keywords in ARCHETYPE_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return archetype
    return SceneArchetype.GENERIC


def extract_sound_effect(prompt: str):
    """First vocabulary effect written in the prompt, or None."""
    text = prompt.upper()
    for pattern, effect in _EFFECT_PATTERNS:
        if pattern.search(text):
            return effect
    return None


class SceneClassifier:
    def classify(self, prompt: str, style: ImageStyle = ImageStyle.COMIC_BOOK) -> ClassifiedScene:
        archetype = classify_archetype(prompt)
        if archetype is SceneArchetype.GENERIC:
            palette = GENERIC_PALETTES[style]
        else:
            palette = ARCHETYPE_PALETTES[archetype]
        sound_effect = extract_sound_effect(prompt) or DEFAULT_SOUND_EFFECTS[archetype]
        return ClassifiedScene(archetype=archetype, palette=palette, sound_effect=sound_effect)
