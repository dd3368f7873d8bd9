"""
Dream Comic — Scene parsing tests.

Strategy cascade over model output, local story planning and the
text-model request path (with fake text generators, no API calls).

Usage:
    python test_scene_parser.py                  # Run all tests
    python test_scene_parser.py test_numbered_list
"""

import asyncio
import json
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).parent))


def _strict_reply(prompts, panel_count=None, fenced=False):
    data = {
        "panelCount": panel_count if panel_count is not None else len(prompts),
        "panels": [
            {"panel": i + 1, "storyPart": f"part {i + 1}", "prompt": p}
            for i, p in enumerate(prompts)
        ],
    }
    text = json.dumps(data, indent=2)
    return f"```json\n{text}\n```" if fenced else text


class FakeTextGenerator:
    """Returns a canned reply, optionally after a delay."""

    def __init__(self, reply: str = "", delay: float = 0.0):
        self.reply = reply
        self.delay = delay
        self.calls = []

    def is_available(self) -> bool:
        return True

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.reply

    async def close(self):
        pass


# ============================================================
# Response parsing
# ============================================================

def test_fenced_strict_json():
    from dream_comic.script_parser import SceneResponseParser

    parser = SceneResponseParser()
    raw = _strict_reply(["A red door", "A stormy sky"], fenced=True)
    assert parser.parse(raw) == ["A red door", "A stormy sky"]

    scenes = parser.parse_detailed(raw)
    assert scenes[0].story_part == "part 1"

    print("  PASS: Fenced strict JSON parsed")


def test_panel_count_limits_list():
    from dream_comic.script_parser import SceneResponseParser

    parser = SceneResponseParser()
    raw = _strict_reply(["A", "B", "C"], panel_count=1)
    assert parser.parse(raw) == ["A"]

    # panelCount never invents panels and never exceeds the maximum
    raw = _strict_reply(["A", "B", "C", "D", "E", "F"], panel_count=9)
    assert parser.parse(raw) == ["A", "B", "C", "D"]

    raw = _strict_reply(["A", "B"], panel_count="1")
    assert parser.parse(raw) == ["A", "B"]

    raw = _strict_reply(["A", "B"], panel_count=True)
    assert parser.parse(raw) == ["A", "B"]

    print("  PASS: panelCount trims but is not trusted")


def test_legacy_json():
    from dream_comic.script_parser import SceneResponseParser

    parser = SceneResponseParser()
    assert parser.parse('{"panels": [{"prompt": "A lighthouse"}]}') == ["A lighthouse"]

    embedded = 'Sure! Here you go: {"panels": [{"prompt": "A lighthouse"}]} Enjoy.'
    assert parser.parse(embedded) == ["A lighthouse"]

    # Panels without a usable prompt are skipped
    raw = '{"panels": [{"prompt": ""}, {"storyPart": "x"}, "junk", {"prompt": " A boat "}]}'
    assert parser.parse(raw) == ["A boat"]

    print("  PASS: Legacy and embedded JSON parsed")


def test_numbered_list():
    from dream_comic.script_parser import SceneResponseParser

    parser = SceneResponseParser()
    raw = "1. A cat runs.\n2. A cat jumps.\n3. A cat rests."
    assert parser.parse(raw) == ["A cat runs.", "A cat jumps.", "A cat rests."]

    print("  PASS: Numbered list parsed")


def test_other_line_formats():
    from dream_comic.script_parser import SceneResponseParser

    parser = SceneResponseParser()
    assert parser.parse("Scene 1: A moon\nScene 2: A boat") == ["A moon", "A boat"]
    assert parser.parse("1) A moon\n2) A boat") == ["A moon", "A boat"]
    assert parser.parse("1: A moon\n2: A boat") == ["A moon", "A boat"]
    assert parser.parse("Here are the panels:\n1. A moon\n\n2. A boat\nThanks") == ["A moon", "A boat"]

    print("  PASS: Line prefixes recognised")


def test_paragraphs():
    from dream_comic.script_parser import SceneResponseParser

    parser = SceneResponseParser()
    assert parser.parse("A quiet lake.\n\nA storm rolls in.") == ["A quiet lake.", "A storm rolls in."]
    assert parser.parse("Just one scene") == ["Just one scene"]

    print("  PASS: Paragraph fallback")


def test_unparseable_output():
    from dream_comic.script_parser import SceneResponseParser

    parser = SceneResponseParser()
    assert parser.parse("") == []
    assert parser.parse("   \n  ") == []
    assert parser.parse("{broken json") == []
    assert parser.parse('{"panels": []}') == []
    assert parser.parse(None) == []
    assert parser.parse("Sorry, I can't help with that. {") == []
    assert parser.parse('Here you go:\n\n{"panels": [{"prompt": ') == []

    print("  PASS: Garbage yields an empty list")


def test_refusal_with_json_fragment_falls_back():
    from dream_comic.errors import EmptyResponseError
    from dream_comic.script_parser import ScriptParser

    parser = ScriptParser(text_generator=FakeTextGenerator("Sorry, I can't help with that. {"))
    try:
        asyncio.run(parser.request_scenes("A story"))
        raise AssertionError("expected EmptyResponseError")
    except EmptyResponseError:
        pass

    print("  PASS: Prose around a broken JSON fragment is not a scene")


def test_truncates_to_four():
    from dream_comic.script_parser import SceneResponseParser

    parser = SceneResponseParser()
    raw = "\n".join(f"{i}. Scene number {i}" for i in range(1, 7))
    result = parser.parse(raw)
    assert len(result) == 4
    assert result[-1] == "Scene number 4"

    print("  PASS: At most four scenes")


def test_crashing_strategy_is_skipped():
    from dream_comic.script_parser import SceneResponseParser, parse_numbered_lines

    def explode(text):
        raise ValueError("bad strategy")

    parser = SceneResponseParser(strategies=[explode, parse_numbered_lines])
    assert parser.parse("1. A moon") == ["A moon"]

    print("  PASS: Strategy errors do not escape")


# ============================================================
# Local planning
# ============================================================

def test_plan_from_story():
    from dream_comic.script_parser import plan_from_story

    story = "The cat escaped through a crumbling door into the storm"
    scenes = plan_from_story(story)
    assert len(scenes) == 1
    assert scenes[0].prompt == story
    assert scenes[0].story_part == story

    scenes = plan_from_story("One. Two. Three. Four. Five. Six.")
    assert [s.story_part for s in scenes] == ["One. Two.", "Three. Four.", "Five.", "Six."]

    scenes = plan_from_story("I was in a forest. I saw a castle!")
    assert [s.prompt for s in scenes] == [
        "The scene was in a forest.",
        "Appearing in view a castle!",
    ]

    assert plan_from_story("   ") == []

    print("  PASS: Story split into ordered beats")


def test_fallback_scenes():
    from dream_comic.content_guard import ContentGuard
    from dream_comic.sanitizer import PromptSanitizer
    from dream_comic.script_parser import FALLBACK_SCENES, fallback_scenes

    assert [s.prompt for s in fallback_scenes()] == FALLBACK_SCENES[:3]
    assert len(fallback_scenes(10)) == 4
    assert len(fallback_scenes(0)) == 1

    sanitizer = PromptSanitizer()
    guard = ContentGuard()
    for scene in FALLBACK_SCENES:
        assert sanitizer.sanitize(scene) == scene
        assert guard.is_clean(scene), scene

    print("  PASS: Stock scenes pass the sanitizer and guard untouched")


# ============================================================
# Text model requests
# ============================================================

def test_request_scenes():
    from dream_comic.script_parser import ScriptParser

    generator = FakeTextGenerator(_strict_reply(["A red door", "A stormy sky"], fenced=True))
    parser = ScriptParser(text_generator=generator)
    scenes = asyncio.run(parser.request_scenes("I was in a forest"))

    assert [s.prompt for s in scenes] == ["A red door", "A stormy sky"]
    system_prompt, user_prompt = generator.calls[0]
    assert "panelCount" in system_prompt
    assert "{style}" not in system_prompt
    assert "The scene was in a forest" in user_prompt

    print("  PASS: Visual director request round trip")


def test_request_scenes_empty_reply():
    from dream_comic.errors import EmptyResponseError
    from dream_comic.script_parser import ScriptParser

    for reply in ("", "{broken json"):
        parser = ScriptParser(text_generator=FakeTextGenerator(reply))
        try:
            asyncio.run(parser.request_scenes("A story"))
            raise AssertionError("expected EmptyResponseError")
        except EmptyResponseError:
            pass

    try:
        asyncio.run(ScriptParser().request_scenes("A story"))
        raise AssertionError("expected EmptyResponseError")
    except EmptyResponseError:
        pass

    print("  PASS: Empty replies raise EmptyResponseError")


def test_request_scenes_timeout():
    from dream_comic.errors import CollaboratorTimeout, ComicGenerationError
    from dream_comic.script_parser import ScriptParser

    generator = FakeTextGenerator(_strict_reply(["A"]), delay=1.0)
    parser = ScriptParser(text_generator=generator, timeout=0.05)
    try:
        asyncio.run(parser.request_scenes("A story"))
        raise AssertionError("expected CollaboratorTimeout")
    except CollaboratorTimeout as e:
        assert isinstance(e, ComicGenerationError)

    print("  PASS: Slow text model raises CollaboratorTimeout")


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

    print("\nScene Parser Tests")
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
