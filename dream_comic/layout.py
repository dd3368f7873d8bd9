"""
Dream Comic — Panel Layout.

Pure geometry: where each panel goes on a page. Frames never overlap,
and every style except widescreen fills the page area inside the
margins exactly.
"""

import math

from dream_comic.models import (
    LayoutStyle,
    Page,
    PageLayout,
    PanelPlan,
    PanelType,
    Rect,
)

WIDE_ASPECT = 1.6
TALL_ASPECT = 0.8


def _stacked_rows(count: int, margin: float, w: float, h: float, gutter: float) -> list[Rect]:
    ph = (h - gutter * (count - 1)) / count
    return [Rect(margin, margin + (ph + gutter) * i, w, ph) for i in range(count)]


def _grid(count: int, margin: float, w: float, h: float, gutter: float) -> list[Rect]:
    cols = 1 if count <= 2 else 2
    rows = math.ceil(count / cols)
    pw = (w - gutter * (cols - 1)) / cols
    ph = (h - gutter * (rows - 1)) / rows
    return [
        Rect(margin + (pw + gutter) * (i % cols), margin + (ph + gutter) * (i // cols), pw, ph)
        for i in range(count)
    ]


def _widescreen(count: int, margin: float, w: float, h: float, gutter: float) -> list[Rect]:
    ph = w * 9 / 16
    total = ph * count + gutter * (count - 1)
    if total > h:
        # Too many 16:9 strips for the page: shrink them to fit
        ph = (h - gutter * (count - 1)) / count
        total = h
    start_y = margin + (h - total) / 2
    return [Rect(margin, start_y + (ph + gutter) * i, w, ph) for i in range(count)]


def _dynamic(count: int, margin: float, w: float, h: float, gutter: float) -> list[Rect]:
    if count == 2:
        return [
            Rect(margin, margin, w, h * 0.58),
            Rect(margin, margin + h * 0.58 + gutter, w, h * 0.42 - gutter),
        ]
    if count == 3:
        top_h = h * 0.55
        bottom_h = h - top_h - gutter
        half_w = (w - gutter) / 2
        return [
            Rect(margin, margin, w, top_h),
            Rect(margin, margin + top_h + gutter, half_w, bottom_h),
            Rect(margin + half_w + gutter, margin + top_h + gutter, half_w, bottom_h),
        ]
    if count == 4:
        half_w = (w - gutter) / 2
        top_h = h * 0.48
        bottom_h = h - top_h - gutter
        return [
            Rect(margin, margin, half_w * 0.85, top_h),
            Rect(margin + half_w * 0.85 + gutter, margin, half_w * 1.15, top_h),
            Rect(margin, margin + top_h + gutter, half_w * 1.15, bottom_h),
            Rect(margin + half_w * 1.15 + gutter, margin + top_h + gutter, half_w * 0.85, bottom_h),
        ]
    return _stacked_rows(count, margin, w, h, gutter)


_LAYOUTS = {
    LayoutStyle.VERTICAL: _stacked_rows,
    LayoutStyle.GRID: _grid,
    LayoutStyle.WIDESCREEN: _widescreen,
    LayoutStyle.DYNAMIC: _dynamic,
}


def compute_frames(
    count: int,
    page_size: tuple,
    margin: float,
    gutter: float,
    style: LayoutStyle = LayoutStyle.DYNAMIC,
) -> list[Rect]:
    """
    Panel rectangles for one page, in reading order.

    Args:
        count: Number of panels on the page (<= 0 gives no frames)
        page_size: (width, height) in pixels
        margin: Empty border around the page
        gutter: Space between neighbouring panels
        style: Layout style

    Returns:
        Exactly `count` non-overlapping rectangles. Sizes never go
        below zero; a page too small for its margins and gutters gets
        empty frames rather than negative ones.
    """
    if count <= 0:
        return []
    page_w, page_h = page_size
    w = page_w - margin * 2
    h = page_h - margin * 2
    frames = _LAYOUTS[style](count, margin, w, h, gutter)
    return [Rect(f.x, f.y, max(0.0, f.width), max(0.0, f.height)) for f in frames]


def size_class_for(frame: Rect, panel_count: int) -> PanelType:
    if panel_count == 1:
        return PanelType.SPLASH
    aspect = frame.width / frame.height if frame.height else 1.0
    if aspect >= WIDE_ASPECT:
        return PanelType.WIDE
    if aspect <= TALL_ASPECT:
        return PanelType.TALL
    return PanelType.STANDARD


def grid_positions(frames: list[Rect]) -> list[tuple]:
    """(row, col) per frame: rows by distinct top edge, cols left to right."""
    tops = sorted({round(frame.y, 3) for frame in frames})
    positions = []
    for frame in frames:
        row = tops.index(round(frame.y, 3))
        col = sum(1 for other in frames if round(other.y, 3) == round(frame.y, 3) and other.x < frame.x)
        positions.append((row, col))
    return positions


def build_page_layout(
    scenes: list[tuple],
    page_size: tuple,
    margin: float,
    gutter: float,
    style: LayoutStyle = LayoutStyle.DYNAMIC,
    panels_per_page: int = 4,
    top_inset: float = 0.0,
) -> PageLayout:
    """
    Plan pages for (prompt, caption) pairs, in story order.

    top_inset reserves space on the first page (title banner).
    """
    panels_per_page = max(1, panels_per_page)
    layout = PageLayout(layout_type=style)

    for start in range(0, len(scenes), panels_per_page):
        chunk = scenes[start:start + panels_per_page]
        page_number = len(layout.pages) + 1
        inset = top_inset if page_number == 1 else 0.0
        frames = compute_frames(len(chunk), (page_size[0], page_size[1] - inset), margin, gutter, style)
        frames = [frame.offset(dy=inset) for frame in frames]

        page = Page(page_number=page_number, frames=frames)
        for index, ((prompt, caption), frame, (row, col)) in enumerate(
            zip(chunk, frames, grid_positions(frames))
        ):
            page.panels.append(PanelPlan(
                index=index,
                row=row,
                col=col,
                size_class=size_class_for(frame, len(chunk)),
                prompt=prompt,
                caption=caption,
                page_number=page_number,
            ))
        layout.pages.append(page)

    return layout
