"""
Dream Comic — Layout, rendering and page assembly tests.

Pure layout geometry, scene classification, placeholder panel art and
page compositing. No network, no API keys.

Usage:
    python test_page_assembly.py                     # Run all tests
    python test_page_assembly.py test_layout_coverage
"""

import io
import math
import sys
import tempfile
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).parent))

PAGE = (1024, 1536)
MARGIN = 20
GUTTER = 12


def _assert_no_overlap(frames):
    for i, a in enumerate(frames):
        for b in frames[i + 1:]:
            assert not a.intersects(b), f"{a} overlaps {b}"


def _assert_inside(frames, page=PAGE, margin=MARGIN):
    for frame in frames:
        assert frame.x >= margin - 1e-6
        assert frame.y >= margin - 1e-6
        assert frame.right <= page[0] - margin + 1e-6
        assert frame.bottom <= page[1] - margin + 1e-6
        assert frame.width > 0 and frame.height > 0


# ============================================================
# Layout
# ============================================================

def test_layout_coverage():
    """Vertical, grid and dynamic layouts fill the page area exactly."""
    from dream_comic.layout import compute_frames
    from dream_comic.models import LayoutStyle

    checked = 0
    for style in (LayoutStyle.VERTICAL, LayoutStyle.GRID, LayoutStyle.DYNAMIC):
        for count in (1, 2, 3, 4, 5, 7):
            frames = compute_frames(count, PAGE, MARGIN, GUTTER, style)
            assert len(frames) == count, f"{style} {count}"
            _assert_no_overlap(frames)
            _assert_inside(frames)

            assert math.isclose(min(f.x for f in frames), MARGIN)
            assert math.isclose(min(f.y for f in frames), MARGIN)
            assert math.isclose(max(f.right for f in frames), PAGE[0] - MARGIN)
            assert math.isclose(max(f.bottom for f in frames), PAGE[1] - MARGIN)
            checked += 1

    print(f"  PASS: {checked} layouts cover the page without overlap")


def test_widescreen_layout():
    from dream_comic.layout import compute_frames
    from dream_comic.models import LayoutStyle

    for count in (1, 2, 3, 5, 7):
        frames = compute_frames(count, PAGE, MARGIN, GUTTER, LayoutStyle.WIDESCREEN)
        assert len(frames) == count
        _assert_no_overlap(frames)
        _assert_inside(frames)

    # Two 16:9 strips fit without shrinking, centred vertically
    frames = compute_frames(2, PAGE, MARGIN, GUTTER, LayoutStyle.WIDESCREEN)
    assert math.isclose(frames[0].width / frames[0].height, 16 / 9)
    top_gap = frames[0].y - MARGIN
    bottom_gap = (PAGE[1] - MARGIN) - frames[-1].bottom
    assert math.isclose(top_gap, bottom_gap)

    print("  PASS: Widescreen strips stay on the page")


def test_layout_edge_counts():
    from dream_comic.layout import compute_frames
    from dream_comic.models import LayoutStyle

    for style in LayoutStyle:
        assert compute_frames(0, PAGE, MARGIN, GUTTER, style) == []
        assert compute_frames(-2, PAGE, MARGIN, GUTTER, style) == []

    frames = compute_frames(4, PAGE, MARGIN, GUTTER, LayoutStyle.DYNAMIC)
    # Alternating narrow/wide columns
    assert frames[0].width < frames[1].width
    assert frames[2].width > frames[3].width

    print("  PASS: Empty pages and dynamic asymmetry")


def test_layout_never_negative():
    from dream_comic.layout import compute_frames
    from dream_comic.models import LayoutStyle

    for style in LayoutStyle:
        for count in (1, 2, 3, 4, 6):
            frames = compute_frames(count, (100, 100), 10, 30, style)
            assert len(frames) == count
            for frame in frames:
                assert frame.width >= 0 and frame.height >= 0, (style, count, frame)

    # Margins wider than the page
    frames = compute_frames(2, (30, 30), 20, 4, LayoutStyle.GRID)
    assert all(frame.width == 0 for frame in frames)

    frames = compute_frames(4, (100, 100), 10, 30, LayoutStyle.VERTICAL)
    assert [frame.height for frame in frames] == [0.0] * 4

    print("  PASS: Oversized gutters give empty frames, not negative ones")


def test_build_page_layout():
    from dream_comic.layout import build_page_layout
    from dream_comic.models import LayoutStyle, PanelType

    scenes = [(f"Scene {i}", f"beat {i}") for i in range(6)]
    layout = build_page_layout(scenes, PAGE, MARGIN, GUTTER, LayoutStyle.DYNAMIC, panels_per_page=4)

    assert layout.panel_count == 6
    assert [len(p.panels) for p in layout.pages] == [4, 2]
    assert [p.prompt for p in layout.panels] == [s[0] for s in scenes]
    for page in layout.pages:
        assert [panel.index for panel in page.panels] == list(range(len(page.panels)))
        assert len({(panel.row, panel.col) for panel in page.panels}) == len(page.panels)
        assert all(panel.page_number == page.page_number for panel in page.panels)

    assert [(p.row, p.col) for p in layout.pages[0].panels] == [(0, 0), (0, 1), (1, 0), (1, 1)]
    assert [(p.row, p.col) for p in layout.pages[1].panels] == [(0, 0), (1, 0)]

    single = build_page_layout([("A moon", None)], PAGE, MARGIN, GUTTER)
    assert single.panels[0].size_class is PanelType.SPLASH

    wide = build_page_layout([("A", None), ("B", None)], PAGE, MARGIN, GUTTER, LayoutStyle.WIDESCREEN)
    assert all(p.size_class is PanelType.WIDE for p in wide.panels)

    print("  PASS: Scenes paged in story order with unique grid positions")


def test_title_inset():
    from dream_comic.layout import build_page_layout
    from dream_comic.models import LayoutStyle

    scenes = [(f"Scene {i}", None) for i in range(5)]
    layout = build_page_layout(
        scenes, PAGE, MARGIN, GUTTER, LayoutStyle.VERTICAL, panels_per_page=4, top_inset=110
    )
    first, second = layout.pages
    assert math.isclose(first.frames[0].y, MARGIN + 110)
    assert math.isclose(first.frames[-1].bottom, PAGE[1] - MARGIN)
    _assert_no_overlap(first.frames)
    assert math.isclose(second.frames[0].y, MARGIN)

    print("  PASS: Title space reserved on the first page only")


# ============================================================
# Scene classification
# ============================================================

def test_classifier_priority():
    from dream_comic.models import SceneArchetype
    from dream_comic.scene_classifier import classify_archetype

    cases = {
        "A dark monster in the sky": SceneArchetype.MONSTER,
        "A golden trophy of victory": SceneArchetype.HERO,
        "A shadow near a door": SceneArchetype.SHADOW,
        "The cat escaped through a crumbling door into the storm": SceneArchetype.ACTION,
        "Birds soar over hills": SceneArchetype.FLYING,
        "A fox on the run": SceneArchetype.CHASE,
        "A quiet teacup": SceneArchetype.GENERIC,
    }
    for prompt, expected in cases.items():
        assert classify_archetype(prompt) is expected, f"{prompt!r}"

    print(f"  PASS: {len(cases)} prompts classified in keyword-group order")


def test_classifier_palettes_and_effects():
    from dream_comic.models import ImageStyle, SceneArchetype
    from dream_comic.scene_classifier import ARCHETYPE_PALETTES, GENERIC_PALETTES, SceneClassifier

    classifier = SceneClassifier()
    scene = classifier.classify("A monster appears")
    assert scene.archetype is SceneArchetype.MONSTER
    assert scene.palette == ARCHETYPE_PALETTES[SceneArchetype.MONSTER]
    assert scene.sound_effect == "ROAR!"
    assert classifier.classify("A monster appears") == scene

    assert classifier.classify("A monster appears, BANG!").sound_effect == "BANG!"
    assert classifier.classify("BOOMERANG in the air").sound_effect == "BAM!"

    for style in ImageStyle:
        generic = classifier.classify("A quiet teacup", style)
        assert generic.palette == GENERIC_PALETTES[style]

    print("  PASS: Palettes and sound effects")


# ============================================================
# Placeholder renderer
# ============================================================

def test_placeholder_every_archetype():
    from PIL import Image

    from dream_comic.models import ClassifiedScene, ImageStyle, SceneArchetype
    from dream_comic.placeholder_renderer import PlaceholderRenderer
    from dream_comic.scene_classifier import (
        ARCHETYPE_PALETTES,
        DEFAULT_SOUND_EFFECTS,
        GENERIC_PALETTES,
    )

    renderer = PlaceholderRenderer()
    for archetype in SceneArchetype:
        palette = ARCHETYPE_PALETTES.get(archetype, GENERIC_PALETTES[ImageStyle.COMIC_BOOK])
        scene = ClassifiedScene(archetype, palette, DEFAULT_SOUND_EFFECTS[archetype])
        data = renderer.render("Silhouette shape in the rain", scene)
        with Image.open(io.BytesIO(data)) as img:
            assert img.format == "PNG"
            assert img.size == (512, 512)

    print(f"  PASS: {len(SceneArchetype)} archetypes render 512x512 PNGs")


def test_placeholder_deterministic():
    from dream_comic.placeholder_renderer import PlaceholderRenderer
    from dream_comic.scene_classifier import SceneClassifier

    prompt = "The cat escaped through a crumbling door into the storm"
    scene = SceneClassifier().classify(prompt)
    renderer = PlaceholderRenderer()
    assert renderer.render(prompt, scene) == renderer.render(prompt, scene)

    print("  PASS: Same prompt, same bytes")


def test_truncate_label():
    from dream_comic.placeholder_renderer import truncate_label

    assert truncate_label("Short caption") == "Short caption"
    long = "x" * 100
    label = truncate_label(long)
    assert len(label) == 60
    assert label.endswith("...")
    assert truncate_label("y" * 60) == "y" * 60

    print("  PASS: Captions cut at 60 characters")


# ============================================================
# Page compositing
# ============================================================

def _rendered(indexes, page_number=1):
    from dream_comic.models import RenderedPanel
    from dream_comic.placeholder_renderer import PlaceholderRenderer
    from dream_comic.scene_classifier import SceneClassifier

    renderer = PlaceholderRenderer()
    classifier = SceneClassifier()
    panels = []
    for index in indexes:
        prompt = f"A glowing moon over the sea, panel {index}"
        panels.append(RenderedPanel(
            index=index,
            page_number=page_number,
            image_bytes=renderer.render(prompt, classifier.classify(prompt)),
            source_prompt=prompt,
        ))
    return panels


def test_compose_leaves_gap_for_missing_panel():
    from PIL import Image

    from dream_comic.layout import compute_frames
    from dream_comic.models import LayoutStyle
    from dream_comic.panel_assembler import PageCompositor

    frames = compute_frames(3, PAGE, MARGIN, GUTTER, LayoutStyle.DYNAMIC)
    data = PageCompositor().compose(_rendered([0, 2]), frames, LayoutStyle.DYNAMIC)

    with Image.open(io.BytesIO(data)) as page:
        assert page.size == PAGE
        gray = page.convert("L")
        filled = gray.crop(frames[0].inset(25).box()).getextrema()
        empty = gray.crop(frames[1].inset(25).box()).getextrema()
    assert filled[0] < 200
    assert empty == (255, 255), empty

    print("  PASS: Missing panel leaves an empty frame")


def test_compose_without_panels_fails():
    from dream_comic.errors import CompositionFailure
    from dream_comic.layout import compute_frames
    from dream_comic.models import LayoutStyle
    from dream_comic.panel_assembler import PageCompositor

    frames = compute_frames(3, PAGE, MARGIN, GUTTER, LayoutStyle.GRID)
    compositor = PageCompositor()
    for rendered in ([], _rendered([5])):
        try:
            compositor.compose(rendered, frames, LayoutStyle.GRID, page_number=2)
            raise AssertionError("expected CompositionFailure")
        except CompositionFailure as e:
            assert e.page_number == 2

    print("  PASS: Empty page raises CompositionFailure")


def test_compose_title_banner():
    from PIL import Image

    from dream_comic.layout import build_page_layout
    from dream_comic.models import LayoutStyle
    from dream_comic.panel_assembler import BANNER_FILL, PageCompositor

    compositor = PageCompositor()
    inset = compositor.title_inset("Storm Door")
    assert inset == 110
    assert compositor.title_inset(None) == 0

    layout = build_page_layout([("A", None), ("B", None)], PAGE, MARGIN, GUTTER, top_inset=inset)
    page = layout.pages[0]
    data = compositor.compose(_rendered([0, 1]), page.frames, LayoutStyle.DYNAMIC, title="Storm Door")

    with Image.open(io.BytesIO(data)) as img:
        assert img.convert("RGB").getpixel((30, 60)) == BANNER_FILL

    print("  PASS: Title banner drawn above the panels")


def test_save_pages_and_pdf():
    from dream_comic.layout import compute_frames
    from dream_comic.models import ComposedPage, LayoutStyle
    from dream_comic.panel_assembler import PageCompositor, export_pdf, save_pages

    frames = compute_frames(1, PAGE, MARGIN, GUTTER, LayoutStyle.DYNAMIC)
    compositor = PageCompositor()
    pages = [
        ComposedPage(page_number=n, image_bytes=compositor.compose(_rendered([0], n), frames, page_number=n))
        for n in (2, 1)
    ]

    with tempfile.TemporaryDirectory() as tmpdir:
        paths = save_pages(pages, tmpdir)
        assert sorted(Path(p).name for p in paths) == ["page_01.png", "page_02.png"]

        pdf_path = export_pdf(pages, str(Path(tmpdir) / "out" / "comic.pdf"))
        data = Path(pdf_path).read_bytes()
        assert data.startswith(b"%PDF")

    try:
        export_pdf([], "unused.pdf")
        raise AssertionError("expected ValueError")
    except ValueError:
        pass

    print("  PASS: PNG pages and PDF written")


# ============================================================
# Runner
# ============================================================

def main():
    """Run tests."""
    specific = sys.argv[1] if len(sys.argv) > 1 else None

    tests = {
        name: func for name, func in globals().items()
        if name.startswith("test_") and callable(func)
    }

    if specific:
        if specific not in tests:
            print(f"Unknown test: {specific}")
            print(f"Available: {', '.join(tests.keys())}")
            sys.exit(1)
        tests = {specific: tests[specific]}

    passed = 0
    failed = 0

    print("\nPage Assembly Tests")
    print("=" * 50)

    for name, func in tests.items():
        print(f"\n{name}:")
        try:
            func()
            passed += 1
        except Exception as e:
            print(f"  FAIL: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print("\n" + "=" * 50)
    print(f"Results: {passed} passed, {failed} failed")

    if failed > 0:
        sys.exit(1)


if __name__ == "__main__":
    main()
