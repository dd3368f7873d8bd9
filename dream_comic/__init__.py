"""
Dream Comic — turn dream journal stories into comic pages.

One generation run:
1. Decide how many panels the story needs (1-4)
2. Write an identity-free scene prompt per panel
3. Render each panel (image model, or procedural placeholder art)
4. Composite panels into page PNGs (optionally a PDF)

Usage:
    from dream_comic import GenerationOrchestrator

    orchestrator = GenerationOrchestrator()
    job = await orchestrator.generate(
        "The cat escaped through a crumbling door into the storm",
    )
    # job.phase == JobPhase.DONE, job.pages[0].image_bytes is a PNG
"""

from dream_comic.comic_generator import ComicSession, GenerationOrchestrator
from dream_comic.models import (
    ComposedPage,
    DreamerProfile,
    GenerationJob,
    ImageStyle,
    JobPhase,
    LayoutStyle,
)

__all__ = [
    "GenerationOrchestrator",
    "ComicSession",
    "GenerationJob",
    "JobPhase",
    "ComposedPage",
    "DreamerProfile",
    "ImageStyle",
    "LayoutStyle",
]
