"""
Dream Comic — Configuration.

Runtime settings come from environment variables (the CLI loads `.env`
first). The content-filter vocabulary lives in `content_filter.yaml`
next to this module and can be replaced with DREAM_COMIC_FILTER_CONFIG.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

FILTER_CONFIG_PATH = Path(__file__).parent / "content_filter.yaml"

DEFAULT_BACKEND_URL = "https://dreamcatcher-api.percodice.it/api/"
DEFAULT_TEXT_MODEL = "claude-sonnet-4-20250514"

# Page geometry (pixels)
PAGE_WIDTH = 1024
PAGE_HEIGHT = 1536
PANEL_SIZE = 512
PAGE_MARGIN = 20
PANEL_GUTTER = 12
BORDER_WIDTH = 4

START_DELAY_SECONDS = 0.5
PANELS_PER_PAGE = 4

# Built-in filter vocabulary, used for any key the YAML file does not set.
DEFAULT_BANNED_TERMS = [
    " i ", " me ", " my ", " we ", " us ", " our ",
    "person", "people", "human", "man ", "woman", "boy ", "girl ",
    "face ", "hand ", "body", "head ", "eye ", "arm ", "leg ",
    "character", "figure", "hero", "protagonist",
    " he ", " she ", " him ", " her ", " his ",
    " they ", " them ", " their ",
    "child",
]

DEFAULT_ALLOWED_COMPOUNDS = [
    "dreamer silhouette",
    "shadow silhouette",
    "monster silhouette",
    "child silhouette",
    "stranger silhouette",
    "silhouette shape",
    "shadow shape",
    "shadowy form",
    "dark silhouette",
]

DEFAULT_SAFE_KEYWORDS = {
    "forest": "mystical forest",
    "tree": "ancient trees",
    "garden": "blooming garden",
    "flower": "colorful flowers",
    "ocean": "vast ocean",
    "sea": "calm sea",
    "beach": "sandy beach",
    "mountain": "majestic mountains",
    "sky": "expansive sky",
    "cloud": "fluffy clouds",
    "star": "twinkling stars",
    "moon": "glowing moon",
    "sun": "warm sunlight",
    "river": "flowing river",
    "lake": "serene lake",
    "waterfall": "cascading waterfall",
    "meadow": "peaceful meadow",
    "castle": "grand castle",
    "path": "winding path",
    "light": "ethereal light",
    "magic": "magical sparkles",
    "glow": "soft glow",
    "crystal": "glittering crystals",
    "rainbow": "vibrant rainbow",
}


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class FilterVocabulary:
    """Term lists the content guard checks prompts against."""

    banned_terms: list[str]
    allowed_compounds: list[str]
    safe_keywords: dict[str, str]


def load_filter_vocabulary(path: Optional[str] = None) -> FilterVocabulary:
    """
    Load the filter vocabulary from YAML.

    Lookup order: explicit path, DREAM_COMIC_FILTER_CONFIG, the bundled
    content_filter.yaml. Keys missing from the file keep their built-in
    defaults; an unreadable file is logged and ignored.
    """
    config_path = Path(
        path or os.environ.get("DREAM_COMIC_FILTER_CONFIG") or FILTER_CONFIG_PATH
    )
    config = {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except Exception as e:
        logger.error(f"Failed to load content filter config {config_path}: {e}")

    banned = config.get("banned_terms") or DEFAULT_BANNED_TERMS
    compounds = config.get("allowed_compounds") or DEFAULT_ALLOWED_COMPOUNDS
    keywords = config.get("safe_keywords") or DEFAULT_SAFE_KEYWORDS

    return FilterVocabulary(
        # Whitespace-only entries would match every padded string
        banned_terms=[str(t).lower() for t in banned if str(t).strip()],
        allowed_compounds=[str(c).lower().strip() for c in compounds if str(c).strip()],
        safe_keywords={str(k).lower(): str(v) for k, v in keywords.items()},
    )


@dataclass
class PipelineSettings:
    """Knobs for one orchestrator. Defaults match the mobile client."""

    backend_url: str = DEFAULT_BACKEND_URL
    auth_token: str = ""
    anthropic_api_key: str = ""
    text_model: str = DEFAULT_TEXT_MODEL
    leonardo_api_key: str = ""
    local_generation_enabled: bool = True
    page_width: int = PAGE_WIDTH
    page_height: int = PAGE_HEIGHT
    panel_size: int = PANEL_SIZE
    margin: float = PAGE_MARGIN
    gutter: float = PANEL_GUTTER
    border_width: int = BORDER_WIDTH
    panels_per_page: int = PANELS_PER_PAGE
    start_delay: float = START_DELAY_SECONDS

    @property
    def page_size(self) -> tuple:
        return (self.page_width, self.page_height)

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        return cls(
            backend_url=os.environ.get("DREAM_COMIC_BACKEND_URL", DEFAULT_BACKEND_URL),
            auth_token=os.environ.get("DREAM_COMIC_AUTH_TOKEN", ""),
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
            text_model=os.environ.get("DREAM_COMIC_TEXT_MODEL", DEFAULT_TEXT_MODEL),
            leonardo_api_key=os.environ.get("LEONARDO_API_KEY", ""),
            local_generation_enabled=_env_flag("DREAM_COMIC_LOCAL_GENERATION", True),
        )
