"""
Dream Comic — Placeholder Renderer.

Procedural comic-panel art for when no image model is available (or it
fails): radial background, halftone dots, speed lines, an archetype
silhouette, a sound-effect starburst, a thick border and a caption
strip. Same prompt and scene in, same PNG bytes out.

Uses Pillow for all drawing.
"""

import io
import logging
import math
import random
import zlib

from PIL import Image, ImageDraw

from dream_comic.fonts import load_font
from dream_comic.models import ClassifiedScene, SceneArchetype

logger = logging.getLogger(__name__)

PANEL_SIZE = 512

BLACK = (0, 0, 0, 255)
WHITE = (255, 255, 255, 255)
RED = (255, 0, 0, 255)
LABEL_TEXT = (85, 85, 85, 255)

HALFTONE_SPACING = 12
HALFTONE_ALPHA = 31  # 12% black
ACTION_LINE_WIDTH = 3
BORDER_WIDTH = 8

BURST_POINTS = 14
BURST_OUTER_RADIUS = 90
BURST_INNER_RADIUS = 55
BURST_FONT_SIZE = 42

LABEL_MAX_CHARS = 60
LABEL_FONT_SIZE = 13


def truncate_label(text: str, limit: int = LABEL_MAX_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _rgba(color: tuple, alpha: int = 255) -> tuple:
    return (color[0], color[1], color[2], alpha)


def _bezier(p0, p1, p2, p3, steps: int = 20) -> list:
    """Sample a cubic Bézier curve (excluding its start point)."""
    points = []
    for i in range(1, steps + 1):
        t = i / steps
        u = 1 - t
        x = u ** 3 * p0[0] + 3 * u ** 2 * t * p1[0] + 3 * u * t ** 2 * p2[0] + t ** 3 * p3[0]
        y = u ** 3 * p0[1] + 3 * u ** 2 * t * p1[1] + 3 * u * t ** 2 * p2[1] + t ** 3 * p3[1]
        points.append((x, y))
    return points


def _thick_line(draw: ImageDraw.ImageDraw, start, end, width: int, fill):
    """Line with round caps."""
    draw.line([start, end], fill=fill, width=width)
    r = width / 2
    for x, y in (start, end):
        draw.ellipse((x - r, y - r, x + r, y + r), fill=fill)


class PlaceholderRenderer:
    """Draws deterministic comic art from a classified scene."""

    def __init__(self, size: int = PANEL_SIZE):
        self.size = size

    def render(self, prompt: str, scene: ClassifiedScene) -> bytes:
        """Render one panel to PNG bytes. Never raises."""
        try:
            image = self.render_image(prompt, scene)
        except Exception as e:
            logger.warning(f"Placeholder drawing failed ({e}) - using plain frame")
            image = self._plain_frame(scene)
        return self._to_png(image)

    def render_image(self, prompt: str, scene: ClassifiedScene) -> Image.Image:
        w = h = self.size
        cx, cy = w / 2, h / 2

        image = self._gradient_background(scene)
        self._draw_halftone(image, cx, cy)
        self._draw_action_lines(image, cx, cy, scene.archetype)
        self._draw_scene_elements(image, prompt, cx, cy, scene)
        self._draw_sound_effect(image, cx, cy - 80, scene.sound_effect)

        draw = ImageDraw.Draw(image)
        draw.rectangle((4, 4, w - 4, h - 4), outline=BLACK, width=BORDER_WIDTH)

        self._draw_label(image, prompt)
        return image.convert("RGB")

    # ============================================================
    # Layers
    # ============================================================

    def _gradient_background(self, scene: ClassifiedScene) -> Image.Image:
        """Radial gradient, primary at the upper centre fading to secondary."""
        size = (self.size, self.size)
        radius = int(self.size * 0.8)
        center_x = self.size / 2
        center_y = self.size / 2 * 0.85

        ramp = Image.radial_gradient("L").resize((radius * 2, radius * 2), Image.Resampling.BILINEAR)
        mask = Image.new("L", size, 255)
        mask.paste(ramp, (int(center_x - radius), int(center_y - radius)))

        primary = Image.new("RGBA", size, _rgba(scene.palette.primary))
        secondary = Image.new("RGBA", size, _rgba(scene.palette.secondary))
        return Image.composite(secondary, primary, mask)

    def _draw_halftone(self, image: Image.Image, cx: float, cy: float):
        layer = Image.new("RGBA", image.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        for x in range(0, self.size, HALFTONE_SPACING):
            for y in range(0, self.size, HALFTONE_SPACING):
                distance = math.hypot(x - cx, y - cy)
                dot = max(1.5, 5 * (1 - distance / self.size))
                draw.ellipse((x, y, x + dot, y + dot), fill=(0, 0, 0, HALFTONE_ALPHA))
        image.alpha_composite(layer)

    def _draw_action_lines(self, image: Image.Image, cx: float, cy: float, archetype: SceneArchetype):
        draw = ImageDraw.Draw(image)
        is_action = archetype is SceneArchetype.ACTION
        count = 32 if is_action else 20
        inner = 60 if is_action else 90
        outer = self.size * 0.65
        for i in range(count):
            angle = i * 2 * math.pi / count
            start = (cx + math.cos(angle) * inner, cy + math.sin(angle) * inner)
            end = (cx + math.cos(angle) * outer, cy + math.sin(angle) * outer)
            draw.line([start, end], fill=BLACK, width=ACTION_LINE_WIDTH)

    def _draw_scene_elements(self, image: Image.Image, prompt: str, cx: float, cy: float, scene: ClassifiedScene):
        accent = _rgba(scene.palette.accent)
        archetype = scene.archetype
        draw = ImageDraw.Draw(image)

        if archetype is SceneArchetype.MONSTER:
            spikes = [
                (0, 120), (-80, 200), (-60, 140), (-100, 100), (-50, 80), (-30, 40),
                (0, 60), (30, 40), (50, 80), (100, 100), (60, 140), (80, 200),
            ]
            draw.polygon([(cx + dx, cy + dy) for dx, dy in spikes], fill=BLACK)
            draw.ellipse((cx - 25, cy + 70, cx - 10, cy + 90), fill=accent)
            draw.ellipse((cx + 10, cy + 70, cx + 25, cy + 90), fill=accent)

        elif archetype is SceneArchetype.HERO:
            cape = [(cx - 30, cy + 60), (cx - 80, cy + 200), (cx + 80, cy + 200), (cx + 30, cy + 60)]
            draw.polygon(cape, fill=accent)
            draw.ellipse((cx - 25, cy + 30, cx + 25, cy + 80), fill=BLACK)
            draw.rectangle((cx - 30, cy + 80, cx + 30, cy + 180), fill=BLACK)
            _thick_line(draw, (cx - 25, cy + 100), (cx - 70, cy + 40), 12, BLACK)
            _thick_line(draw, (cx + 25, cy + 100), (cx + 70, cy + 40), 12, BLACK)

        elif archetype is SceneArchetype.SHADOW:
            top = (cx, cy + 20)
            outline = [top]
            outline += _bezier(top, (cx - 40, cy + 60), (cx - 120, cy + 140), (cx - 100, cy + 200))
            outline.append((cx + 100, cy + 200))
            outline += _bezier((cx + 100, cy + 200), (cx + 120, cy + 140), (cx + 40, cy + 60), top)
            layer = Image.new("RGBA", image.size, (0, 0, 0, 0))
            ImageDraw.Draw(layer).polygon(outline, fill=(0, 0, 0, 217))
            image.alpha_composite(layer)
            draw = ImageDraw.Draw(image)
            draw.ellipse((cx - 20, cy + 50, cx - 8, cy + 58), fill=accent)
            draw.ellipse((cx + 8, cy + 50, cx + 20, cy + 58), fill=accent)

        elif archetype is SceneArchetype.ACTION:
            rng = random.Random(zlib.crc32(prompt.encode("utf-8")))
            for _ in range(8):
                x = cx + rng.uniform(-100, 100)
                y = cy + rng.uniform(-50, 150)
                half_w = rng.uniform(15, 40) / 2
                half_h = rng.uniform(10, 30) / 2
                angle = rng.uniform(0, 2 * math.pi)
                cos_a, sin_a = math.cos(angle), math.sin(angle)
                corners = [(-half_w, -half_h), (half_w, -half_h), (half_w, half_h), (-half_w, half_h)]
                draw.polygon(
                    [(x + px * cos_a - py * sin_a, y + px * sin_a + py * cos_a) for px, py in corners],
                    fill=BLACK,
                )
            draw.ellipse((cx - 20, cy + 80, cx + 20, cy + 120), fill=BLACK)
            draw.rectangle((cx - 25, cy + 120, cx + 25, cy + 190), fill=BLACK)

        elif archetype is SceneArchetype.FLYING:
            body = [(cx - 80, cy + 80), (cx + 80, cy + 80), (cx + 60, cy + 100), (cx - 60, cy + 100)]
            draw.polygon(body, fill=BLACK)
            draw.ellipse((cx + 50, cy + 60, cx + 85, cy + 95), fill=BLACK)
            start = (cx - 60, cy + 85)
            cape = [start]
            cape += _bezier(start, (cx - 90, cy + 100), (cx - 120, cy + 120), (cx - 140, cy + 140))
            cape.append((cx - 60, cy + 100))
            draw.polygon(cape, fill=accent)

        elif archetype is SceneArchetype.CHASE:
            # Draw the faintest copy first so the lead silhouette sits on top
            for i in reversed(range(3)):
                alpha = int(round((1.0 - i * 0.3) * 255))
                fill = (0, 0, 0, alpha)
                base_x = cx - 25 * i
                layer = Image.new("RGBA", image.size, (0, 0, 0, 0))
                ghost = ImageDraw.Draw(layer)
                ghost.ellipse((base_x - 15, cy + 60, base_x + 15, cy + 90), fill=fill)
                ghost.rectangle((base_x - 18, cy + 90, base_x + 18, cy + 140), fill=fill)
                ghost.line([(base_x - 10, cy + 140), (base_x - 30, cy + 180)], fill=fill, width=8)
                ghost.line([(base_x + 10, cy + 140), (base_x + 40, cy + 160)], fill=fill, width=8)
                image.alpha_composite(layer)

        else:
            draw.ellipse((cx - 25, cy + 60, cx + 25, cy + 110), fill=BLACK)
            draw.rectangle((cx - 30, cy + 110, cx + 30, cy + 190), fill=BLACK)

    def _draw_sound_effect(self, image: Image.Image, cx: float, cy: float, text: str):
        draw = ImageDraw.Draw(image)
        points = []
        for i in range(BURST_POINTS * 2):
            angle = i * math.pi / BURST_POINTS - math.pi / 2
            r = BURST_OUTER_RADIUS if i % 2 == 0 else BURST_INNER_RADIUS
            points.append((cx + math.cos(angle) * r, cy + math.sin(angle) * r))
        draw.polygon(points, fill=WHITE, outline=BLACK, width=4)

        font = load_font("Bangers", BURST_FONT_SIZE)
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font, stroke_width=2)
        draw.text(
            (cx - (right - left) / 2 - left, cy - (bottom - top) / 2 - top),
            text,
            font=font,
            fill=RED,
            stroke_width=2,
            stroke_fill=BLACK,
        )

    def _draw_label(self, image: Image.Image, prompt: str):
        label = truncate_label(prompt)
        if not label:
            return
        font = load_font("Body", LABEL_FONT_SIZE)
        layer = Image.new("RGBA", image.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        left, top, right, bottom = draw.textbbox((0, 0), label, font=font)
        text_w, text_h = right - left, bottom - top
        box_top = self.size - text_h - 22
        box = (12, box_top, min(self.size - 12, 12 + text_w + 12), box_top + text_h + 10)
        draw.rounded_rectangle(box, radius=4, fill=(255, 255, 255, 217))
        draw.text((18 - left, box_top + 5 - top), label, font=font, fill=LABEL_TEXT)
        image.alpha_composite(layer)

    # ============================================================
    # Output
    # ============================================================

    def _plain_frame(self, scene: ClassifiedScene) -> Image.Image:
        image = Image.new("RGB", (self.size, self.size), tuple(scene.palette.primary))
        ImageDraw.Draw(image).rectangle(
            (4, 4, self.size - 4, self.size - 4), outline=(0, 0, 0), width=BORDER_WIDTH
        )
        return image

    def _to_png(self, image: Image.Image) -> bytes:
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()
