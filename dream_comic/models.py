"""
Dream Comic — Data models.

Dataclasses for the whole generation pipeline:
PanelPlan → Page → PageLayout → RenderedPanel → ComposedPage,
all owned by a GenerationJob.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


# ============================================================
# Image styles: what the image model is asked to draw like
# ============================================================

class ImageStyle(Enum):
    """Visual styles understood by the image pipeline."""

    COMIC_BOOK = "comic_book"
    POP_ART = "pop_art"
    GRAPHIC_NOVEL = "graphic_novel"
    LINE_ART = "line_art"


VECTOR_STYLE = (
    "flat vector comic panel, graphic design style, thick black vector outlines, "
    "simple geometric shapes, two-dimensional, no depth, no shading, "
    "solid flat colors only, high contrast color blocks, clean poster-like composition, "
    "bold centered subject, minimal background, symbolic silhouette shapes, "
    "screen print look"
)

NEGATIVE_PROMPT = (
    "photorealistic, photograph, 3D render, CGI, anime, manga, watercolor, "
    "oil painting, realistic faces, detailed skin texture, gradients, "
    "lighting effects, texture, depth, shading, blurry, low quality"
)

IMAGE_STYLES = {
    ImageStyle.COMIC_BOOK: {
        "name": "Comic Book",
        "prompt": f"{VECTOR_STYLE}, comic sound effect text, action pose",
        "negative": NEGATIVE_PROMPT,
    },
    ImageStyle.POP_ART: {
        "name": "Pop Art",
        "prompt": f"{VECTOR_STYLE}, primary colors red yellow blue, bold color blocks",
        "negative": NEGATIVE_PROMPT,
    },
    ImageStyle.GRAPHIC_NOVEL: {
        "name": "Graphic Novel",
        "prompt": f"{VECTOR_STYLE}, noir silhouettes, black and white with color accent",
        "negative": NEGATIVE_PROMPT,
    },
    ImageStyle.LINE_ART: {
        "name": "Line Art",
        "prompt": f"{VECTOR_STYLE}, two-tone, minimal fills, strong black shapes",
        "negative": NEGATIVE_PROMPT,
    },
}

QUALITY_SUFFIX = ", high quality, detailed, professional illustration"


def get_image_style(style: ImageStyle = ImageStyle.COMIC_BOOK) -> dict:
    """Get image style config by enum."""
    return IMAGE_STYLES[style]


def build_image_prompt(scene: str, style: ImageStyle = ImageStyle.COMIC_BOOK) -> str:
    """Full prompt sent to an image model for one sanitized scene."""
    prompt = scene.strip()
    lowered = prompt.lower()
    if "comic" not in lowered and "pop art" not in lowered:
        prompt = f"{prompt}, {IMAGE_STYLES[style]['prompt']}"
    return prompt + QUALITY_SUFFIX


# ============================================================
# Scene classification
# ============================================================

class SceneArchetype(Enum):
    """Coarse category used to drive the procedural placeholder art."""

    MONSTER = "monster"
    HERO = "hero"
    SHADOW = "shadow"
    ACTION = "action"
    FLYING = "flying"
    CHASE = "chase"
    GENERIC = "generic"


@dataclass(frozen=True)
class Palette:
    """Three RGB colors: background gradient start/end plus accent."""

    primary: tuple
    secondary: tuple
    accent: tuple


@dataclass(frozen=True)
class ClassifiedScene:
    """Archetype plus the palette and sound effect derived from a prompt."""

    archetype: SceneArchetype
    palette: Palette
    sound_effect: str


# ============================================================
# Layout
# ============================================================

class PanelType(Enum):
    """Panel size class, derived from its frame on the page."""

    WIDE = "wide"
    STANDARD = "standard"
    TALL = "tall"
    SPLASH = "splash"


class LayoutStyle(Enum):
    VERTICAL = "vertical"
    GRID = "grid"
    WIDESCREEN = "widescreen"
    DYNAMIC = "dynamic"


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in page pixels (top-left origin)."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def intersects(self, other: "Rect", tolerance: float = 1e-6) -> bool:
        """True if the interiors overlap (shared edges do not count)."""
        return (
            self.x < other.right - tolerance
            and other.x < self.right - tolerance
            and self.y < other.bottom - tolerance
            and other.y < self.bottom - tolerance
        )

    def inset(self, amount: float) -> "Rect":
        return Rect(
            self.x + amount,
            self.y + amount,
            max(0.0, self.width - 2 * amount),
            max(0.0, self.height - 2 * amount),
        )

    def offset(self, dx: float = 0.0, dy: float = 0.0) -> "Rect":
        return Rect(self.x + dx, self.y + dy, self.width, self.height)

    def box(self) -> tuple:
        """Integer (left, top, right, bottom) box for Pillow."""
        return (
            int(round(self.x)),
            int(round(self.y)),
            int(round(self.right)),
            int(round(self.bottom)),
        )


@dataclass
class PanelPlan:
    """One planned panel: where it sits on its page and what it shows."""

    index: int
    row: int
    col: int
    size_class: PanelType
    prompt: str
    caption: Optional[str] = None
    page_number: int = 1

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "row": self.row,
            "col": self.col,
            "size_class": self.size_class.value,
            "prompt": self.prompt,
            "caption": self.caption,
            "page_number": self.page_number,
        }


@dataclass
class Page:
    """A single comic page: its panel plans and their frames."""

    page_number: int
    panels: list[PanelPlan] = field(default_factory=list)
    frames: list[Rect] = field(default_factory=list)


@dataclass
class PageLayout:
    layout_type: LayoutStyle
    pages: list[Page] = field(default_factory=list)

    @property
    def panel_count(self) -> int:
        return sum(len(page.panels) for page in self.pages)

    @property
    def panels(self) -> list[PanelPlan]:
        return [panel for page in self.pages for panel in page.panels]


# ============================================================
# Rendering output
# ============================================================

@dataclass
class RenderedPanel:
    """PNG bytes for one panel. Failed renders never produce one."""

    index: int
    page_number: int
    image_bytes: bytes
    source_prompt: str
    generation_latency: float = 0.0
    archetype: Optional[SceneArchetype] = None
    renderer: str = "placeholder"


@dataclass
class ComposedPage:
    page_number: int
    image_bytes: bytes
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class DreamerProfile:
    """Optional context forwarded to the remote comic backend."""

    gender: Optional[str] = None
    age: Optional[int] = None
    avatar_description: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "gender": self.gender,
            "age": self.age,
            "avatar_description": self.avatar_description,
        }
        return {k: v for k, v in data.items() if v not in (None, "")}


# ============================================================
# Job
# ============================================================

class JobPhase(Enum):
    IDLE = "idle"
    PLANNING = "planning"
    RENDERING_PANELS = "rendering_panels"
    COMPOSITING = "compositing"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_PHASES = (JobPhase.DONE, JobPhase.CANCELLED, JobPhase.FAILED)


@dataclass
class GenerationJob:
    """
    State of one story-to-comic run.

    Only the orchestrator running the job mutates it; everyone else
    reads it. Progress never decreases.
    """

    story: str
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    phase: JobPhase = JobPhase.IDLE
    progress: float = 0.0
    status_message: str = ""
    cancel_requested: bool = False
    layout: Optional[PageLayout] = None
    rendered_panels: list[RenderedPanel] = field(default_factory=list)
    pages: list[ComposedPage] = field(default_factory=list)
    error: Optional[Exception] = None
    used_remote: bool = False
    generation_log: list[str] = field(default_factory=list)

    @property
    def is_finished(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def request_cancel(self):
        self.cancel_requested = True

    def advance(self, progress: float, message: Optional[str] = None):
        """Move progress forward (clamped to 0..1, never backwards)."""
        progress = min(1.0, max(0.0, progress))
        if progress > self.progress:
            self.progress = progress
        if message is not None:
            self.status_message = message

    def log(self, message: str):
        """Append a timestamped entry to the generation log."""
        timestamp = datetime.now().strftime("%H:%M:%S")
        self.generation_log.append(f"[{timestamp}] {message}")

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "phase": self.phase.value,
            "progress": self.progress,
            "status_message": self.status_message,
            "panel_count": self.layout.panel_count if self.layout else 0,
            "rendered_panels": len(self.rendered_panels),
            "pages": len(self.pages),
            "used_remote": self.used_remote,
            "error": str(self.error) if self.error else None,
            "generation_log": self.generation_log,
        }
