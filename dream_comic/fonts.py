"""Font lookup shared by the placeholder renderer and the page compositor."""

import logging
import os
from functools import lru_cache
from pathlib import Path

from PIL import ImageFont

logger = logging.getLogger(__name__)

# Bundled fonts take priority over system ones
FONTS_DIR = Path(__file__).parent / "assets" / "fonts"

FONT_CANDIDATES = {
    "Bangers": ["Bangers-Regular.ttf", "Bangers.ttf", "Impact.ttf", "impact.ttf"],
    "Body": ["DejaVuSans-Bold.ttf", "Arial Bold.ttf", "arialbd.ttf", "Helvetica.ttc"],
}

FONT_DIRS = [
    Path(os.environ.get("WINDIR", "C:\\Windows")) / "Fonts",
    Path("/usr/share/fonts"),
    Path("/usr/share/fonts/truetype"),
    Path("/usr/share/fonts/truetype/dejavu"),
    Path("/Library/Fonts"),
    Path("/System/Library/Fonts"),
    Path.home() / ".local" / "share" / "fonts",
]


@lru_cache(maxsize=32)
def load_font(preferred_name: str, size: int):
    """Load a font, trying bundled → system → Pillow default."""
    for ext in (".ttf", ".otf"):
        bundled = FONTS_DIR / f"{preferred_name}{ext}"
        if bundled.exists():
            return ImageFont.truetype(str(bundled), size)

    for font_name in FONT_CANDIDATES.get(preferred_name, [preferred_name + ".ttf"]):
        for font_dir in FONT_DIRS:
            font_path = font_dir / font_name
            if font_path.exists():
                try:
                    return ImageFont.truetype(str(font_path), size)
                except OSError as e:
                    logger.debug(f"Could not open font {font_path}: {e}")

    logger.debug(f"Font '{preferred_name}' not found - using Pillow default")
    return ImageFont.load_default(size=size)
