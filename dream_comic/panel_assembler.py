"""
Dream Comic — Panel Assembler.

Composites rendered panels into finished comic pages:
- Drop-shadowed white panel cards
- Aspect-fill panel art clipped to each frame
- Black panel borders
- Optional title banner on the first page
- Page PNG export and multi-page PDF output

Uses Pillow for all image manipulation.
"""

import io
import logging
from pathlib import Path
from typing import Optional

from PIL import Image, ImageDraw, ImageFilter

from dream_comic.config import BORDER_WIDTH, PAGE_HEIGHT, PAGE_MARGIN, PAGE_WIDTH
from dream_comic.errors import CompositionFailure
from dream_comic.fonts import load_font
from dream_comic.models import ComposedPage, LayoutStyle, Rect, RenderedPanel

logger = logging.getLogger(__name__)

PAGE_BACKGROUND = (255, 255, 255)
BORDER_COLOR = (0, 0, 0)
CARD_FILL = (255, 255, 255)

SHADOW_OFFSET = 3
SHADOW_BLUR = 5
SHADOW_ALPHA = 77  # 30% black

# Title banner (first page only)
BANNER_HEIGHT = 110
BANNER_FILL = (245, 158, 11)  # golden yellow
BANNER_TEXT = (26, 26, 30)    # ink black
BANNER_FONT_SIZE = 56


class PageCompositor:
    """Assembles rendered panels into page images."""

    def __init__(
        self,
        page_size: tuple = (PAGE_WIDTH, PAGE_HEIGHT),
        border_width: int = BORDER_WIDTH,
        margin: float = PAGE_MARGIN,
    ):
        self.page_size = page_size
        self.border_width = border_width
        self.margin = margin

    def title_inset(self, title: Optional[str]) -> float:
        """Vertical space the title banner takes from the first page."""
        return BANNER_HEIGHT if title else 0.0

    def compose(
        self,
        rendered: list[RenderedPanel],
        frames: list[Rect],
        style: LayoutStyle = LayoutStyle.DYNAMIC,
        title: Optional[str] = None,
        page_number: int = 1,
    ) -> bytes:
        """
        Draw one page.

        Panels are placed in frames[panel.index]; frames without a
        panel stay empty.

        Raises:
            CompositionFailure: no panel could be placed on the page
        """
        placed = [
            (frames[panel.index], panel)
            for panel in rendered
            if 0 <= panel.index < len(frames)
        ]
        if not placed:
            raise CompositionFailure(
                f"Page {page_number} has no rendered panels", page_number=page_number
            )

        page = Image.new("RGBA", self.page_size, PAGE_BACKGROUND + (255,))
        self._draw_shadows(page, [frame for frame, _ in placed])

        draw = ImageDraw.Draw(page)
        for frame, panel in placed:
            draw.rectangle(frame.box(), fill=CARD_FILL)
            try:
                self._paste_panel(page, panel, frame)
            except Exception as e:
                logger.warning(f"Page {page_number}: panel {panel.index} image unusable: {e}")
            half = self.border_width / 2
            draw.rectangle(frame.inset(half).box(), outline=BORDER_COLOR, width=self.border_width)

        if title:
            self._draw_title_banner(page, title)

        logger.info(
            f"Page {page_number} composed ({style.value}): "
            f"{len(placed)}/{len(frames)} panels"
        )
        buffer = io.BytesIO()
        page.convert("RGB").save(buffer, format="PNG")
        return buffer.getvalue()

    def _draw_shadows(self, page: Image.Image, frames: list[Rect]):
        layer = Image.new("RGBA", page.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        for frame in frames:
            draw.rectangle(
                frame.offset(SHADOW_OFFSET, SHADOW_OFFSET).box(),
                fill=(0, 0, 0, SHADOW_ALPHA),
            )
        page.alpha_composite(layer.filter(ImageFilter.GaussianBlur(SHADOW_BLUR)))

    def _paste_panel(self, page: Image.Image, panel: RenderedPanel, frame: Rect):
        target = frame.inset(self.border_width)
        left, top, right, bottom = target.box()
        if right <= left or bottom <= top:
            return
        with Image.open(io.BytesIO(panel.image_bytes)) as source:
            art = self._fit_image(source.convert("RGBA"), right - left, bottom - top)
        page.alpha_composite(art, (left, top))

    def _fit_image(self, img: Image.Image, target_w: int, target_h: int) -> Image.Image:
        """Resize and crop image to fill target dimensions (cover mode)."""
        scale = max(target_w / img.width, target_h / img.height)
        new_w = max(target_w, int(round(img.width * scale)))
        new_h = max(target_h, int(round(img.height * scale)))
        img = img.resize((new_w, new_h), Image.Resampling.LANCZOS)

        # Center crop
        left = (new_w - target_w) // 2
        top = (new_h - target_h) // 2
        return img.crop((left, top, left + target_w, top + target_h))

    def _draw_title_banner(self, page: Image.Image, title: str):
        draw = ImageDraw.Draw(page)
        m = int(self.margin)
        box = (m, m, page.width - m, m + BANNER_HEIGHT - int(self.margin))
        draw.rectangle(box, fill=BANNER_FILL, outline=BORDER_COLOR, width=self.border_width)

        font = load_font("Bangers", BANNER_FONT_SIZE)
        text = title.upper()
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        x = (page.width - (right - left)) / 2 - left
        y = box[1] + (box[3] - box[1] - (bottom - top)) / 2 - top
        draw.text((x, y), text, font=font, fill=BANNER_TEXT)


def save_pages(pages: list[ComposedPage], output_dir: str) -> list[str]:
    """Write pages as page_01.png, page_02.png, ... and return their paths."""
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    paths = []
    for page in pages:
        path = out / f"page_{page.page_number:02d}.png"
        path.write_bytes(page.image_bytes)
        paths.append(str(path))
        logger.info(f"Page saved: {path} ({len(page.image_bytes):,} bytes)")
    return paths


def export_pdf(pages: list[ComposedPage], output_path: str) -> str:
    """
    Generate a multi-page PDF from composed pages.

    Args:
        pages: Composed pages, in order
        output_path: Output PDF path

    Returns:
        Path to generated PDF
    """
    if not pages:
        raise ValueError("No composed pages to create PDF from")

    images = [
        Image.open(io.BytesIO(page.image_bytes)).convert("RGB")
        for page in sorted(pages, key=lambda p: p.page_number)
    ]
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)

    first_image = images[0]
    if len(images) > 1:
        first_image.save(
            output_path,
            save_all=True,
            append_images=images[1:],
            resolution=150,
        )
    else:
        first_image.save(output_path, resolution=150)

    logger.info(f"PDF generated: {output_path} ({len(images)} pages)")
    return output_path
