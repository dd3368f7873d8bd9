"""
Dream Comic — Script Parser.

Turns a dream story into 1-4 panel scene prompts, either by asking the
text model to act as a visual director or, with no text model, by
splitting the story itself into beats.

Model output is untrusted: parsing runs an ordered list of strategies
(strict JSON, legacy JSON, numbered lines, paragraphs) and the first
one that yields anything wins.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from dream_comic.errors import CollaboratorTimeout, EmptyResponseError
from dream_comic.models import VECTOR_STYLE
from dream_comic.sanitizer import PromptSanitizer

logger = logging.getLogger(__name__)

MAX_PANELS = 4
DEFAULT_FALLBACK_COUNT = 3
TEXT_TIMEOUT_SECONDS = 60

VISUAL_DIRECTOR_PROMPT = """You generate image prompts for a dream-to-comic application.

Your job is to convert the story into flat graphic comic panels.

== PANEL COUNT ==

- very simple story -> 1 panel
- short story with progression -> 2 panels
- full narrative arc -> 3-4 panels
- never more than 4 panels

== PROMPT WRITING RULES ==

- Think like a graphic designer, not an illustrator.
- Use simple objects and simple actions.
- Describe only what can be clearly drawn.
- No poetic language, no long sentences, no metaphors.
- Focus on: subject + action + environment.
- Never describe people, faces or bodies. Use silhouette shapes,
  objects, animals and places instead. No names, no pronouns.

== REQUIRED STYLE (include in EVERY prompt) ==

{style}

== JSON OUTPUT FORMAT ==

Return ONLY valid JSON, no markdown fences, no commentary:

{{
  "panelCount": 3,
  "panels": [
    {{
      "panel": 1,
      "storyPart": "which part of the story this panel shows",
      "prompt": "short concrete prompt with style keywords"
    }}
  ]
}}
"""


@dataclass
class ScenePrompt:
    """One raw scene description plus the story beat it came from."""

    prompt: str
    story_part: Optional[str] = None


# Stock scenes for when the text model fails. Already identity-free.
FALLBACK_SCENES = [
    f"Silhouette shape running through a doorway, SMASH! text, yellow and orange background, {VECTOR_STYLE}",
    f"Dark shadow shape with a lightning bolt, purple and blue color blocks, {VECTOR_STYLE}",
    f"Explosion circle with BOOM! text, red and orange shapes, centered composition, {VECTOR_STYLE}",
    f"Standing silhouette shape with a cape, POW! text, gold and blue background, {VECTOR_STYLE}",
    f"Monster silhouette roaring, CRASH! text, green and black shapes, {VECTOR_STYLE}",
    f"Silhouette shape landing from a jump, BAM! text, red and yellow color blocks, {VECTOR_STYLE}",
]


# ============================================================
# Parsing strategies: pure functions, text in, scenes out
# ============================================================

_FENCE_START = re.compile(r"^```(?:json)?", re.IGNORECASE)

LINE_PATTERNS = [
    re.compile(r"^\d+\.\s*(.+)$", re.IGNORECASE),
    re.compile(r"^\d+\)\s*(.+)$", re.IGNORECASE),
    re.compile(r"^\d+:\s*(.+)$", re.IGNORECASE),
    re.compile(r"^Scene\s*\d+[:.)]?\s*(.+)$", re.IGNORECASE),
]

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


def strip_code_fences(text: str) -> str:
    """Remove a leading ``` / ```json fence and a trailing ``` fence."""
    text = text.strip()
    text = _FENCE_START.sub("", text, count=1)
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def _load_json_object(text: str) -> Optional[dict]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return data if isinstance(data, dict) else None


def _panel_prompts(data: dict) -> list[ScenePrompt]:
    panels = data.get("panels")
    if not isinstance(panels, list):
        return []
    scenes = []
    for panel in panels:
        if not isinstance(panel, dict):
            continue
        prompt = panel.get("prompt")
        if not isinstance(prompt, str) or not prompt.strip():
            continue
        story_part = panel.get("storyPart")
        if not isinstance(story_part, str) or not story_part.strip():
            story_part = None
        scenes.append(ScenePrompt(prompt=prompt.strip(), story_part=story_part))
    return scenes


def parse_strict_json(text: str) -> list[ScenePrompt]:
    """{"panelCount": n, "panels": [{"panel", "storyPart", "prompt"}]}"""
    data = _load_json_object(strip_code_fences(text))
    if data is None or "panelCount" not in data:
        return []
    scenes = _panel_prompts(data)
    count = data.get("panelCount")
    # bool is an int subclass; a stray true must not mean one panel
    if isinstance(count, int) and not isinstance(count, bool) and 1 <= count < len(scenes):
        scenes = scenes[:count]
    return scenes


def parse_legacy_json(text: str) -> list[ScenePrompt]:
    """{"panels": [{"prompt": ...}]}, bare or embedded in prose."""
    stripped = strip_code_fences(text)
    data = _load_json_object(stripped)
    if data is None:
        start = stripped.find("{")
        end = stripped.rfind("}")
        if start == -1 or end <= start:
            return []
        data = _load_json_object(stripped[start:end + 1])
    if data is None:
        return []
    return _panel_prompts(data)


def parse_numbered_lines(text: str) -> list[ScenePrompt]:
    """'1. x', '1) x', '1: x' or 'Scene 1: x' lines."""
    scenes = []
    for line in text.splitlines():
        line = line.strip()
        for pattern in LINE_PATTERNS:
            match = pattern.match(line)
            if match:
                content = match.group(1).strip()
                if content:
                    scenes.append(ScenePrompt(prompt=content))
                break
    return scenes


def parse_paragraphs(text: str) -> list[ScenePrompt]:
    """Blank-line separated paragraphs. JSON-looking text is not prose."""
    stripped = strip_code_fences(text)
    # Any brace left here is JSON the earlier strategies could not read
    if stripped.startswith("[") or "{" in stripped:
        return []
    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", stripped)]
    return [ScenePrompt(prompt=p) for p in paragraphs if p]


PARSE_STRATEGIES: list[Callable[[str], list[ScenePrompt]]] = [
    parse_strict_json,
    parse_legacy_json,
    parse_numbered_lines,
    parse_paragraphs,
]


class SceneResponseParser:
    """Runs the strategy cascade over raw model output. Never raises."""

    def __init__(self, strategies: Optional[list] = None, max_panels: int = MAX_PANELS):
        self.strategies = strategies or PARSE_STRATEGIES
        self.max_panels = max_panels

    def parse_detailed(self, raw: str) -> list[ScenePrompt]:
        if not raw or not raw.strip():
            return []
        for strategy in self.strategies:
            try:
                scenes = strategy(raw)
            except Exception as e:
                logger.warning(f"Parse strategy {strategy.__name__} crashed: {e}")
                continue
            if scenes:
                logger.debug(f"Parsed {len(scenes)} scenes via {strategy.__name__}")
                return scenes[: self.max_panels]
        return []

    def parse(self, raw: str) -> list[str]:
        return [scene.prompt for scene in self.parse_detailed(raw)]


# ============================================================
# Planning
# ============================================================

def plan_from_story(
    story: str,
    sanitizer: Optional[PromptSanitizer] = None,
    max_panels: int = MAX_PANELS,
) -> list[ScenePrompt]:
    """
    Split a story into at most max_panels beats, in story order.

    Sentences are grouped into contiguous, near-equal chunks when there
    are more sentences than panels.
    """
    sanitizer = sanitizer or PromptSanitizer()
    sentences = [s.strip() for s in _SENTENCE_SPLIT.split(story.strip()) if s.strip()]
    if not sentences:
        return []

    count = min(len(sentences), max_panels)
    size, extra = divmod(len(sentences), count)
    scenes = []
    start = 0
    for i in range(count):
        end = start + size + (1 if i < extra else 0)
        beat = " ".join(sentences[start:end])
        start = end
        prompt = sanitizer.preprocess_story(beat)
        if prompt:
            scenes.append(ScenePrompt(prompt=prompt, story_part=beat))
    return scenes


def fallback_scenes(count: int = DEFAULT_FALLBACK_COUNT) -> list[ScenePrompt]:
    """Stock scenes, cycled to the requested count."""
    count = max(1, min(count, MAX_PANELS))
    return [ScenePrompt(prompt=FALLBACK_SCENES[i % len(FALLBACK_SCENES)]) for i in range(count)]


class ScriptParser:
    """Asks the text model for a panel breakdown of a story."""

    def __init__(
        self,
        text_generator=None,
        sanitizer: Optional[PromptSanitizer] = None,
        response_parser: Optional[SceneResponseParser] = None,
        timeout: float = TEXT_TIMEOUT_SECONDS,
    ):
        self.text_generator = text_generator
        self.sanitizer = sanitizer or PromptSanitizer()
        self.response_parser = response_parser or SceneResponseParser()
        self.timeout = timeout

    def build_prompts(self, story: str) -> tuple[str, str]:
        """System and user prompt for the visual director call."""
        system_prompt = VISUAL_DIRECTOR_PROMPT.format(style=VECTOR_STYLE)
        cleaned = self.sanitizer.preprocess_story(story)
        user_prompt = (
            f"Convert this dream story into flat vector comic panels.\n\n"
            f"STORY:\n\"{cleaned}\"\n\n"
            f"For each panel, write a SHORT prompt: subject + action + environment "
            f"+ style keywords. Output JSON only."
        )
        return system_prompt, user_prompt

    async def request_scenes(self, story: str) -> list[ScenePrompt]:
        """
        Ask the text model for scenes and parse the answer.

        Raises:
            EmptyResponseError: the model answered with nothing parseable
            CollaboratorTimeout: the model did not answer in time
        """
        if self.text_generator is None:
            raise EmptyResponseError("No text generator configured")

        system_prompt, user_prompt = self.build_prompts(story)
        logger.info(f"Requesting scene breakdown for: {story[:80]}...")
        try:
            raw = await asyncio.wait_for(
                self.text_generator.complete(system_prompt, user_prompt),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise CollaboratorTimeout(
                f"Text generator did not answer within {self.timeout}s"
            ) from e

        scenes = self.response_parser.parse_detailed(raw or "")
        if not scenes:
            raise EmptyResponseError("Text generator returned no usable scenes")

        logger.info(f"Visual director chose {len(scenes)} panels")
        return scenes
