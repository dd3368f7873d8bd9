"""
Dream Comic — command-line generator.

Usage:
    python generate_comic.py "The cat escaped through a crumbling door into the storm"
    python generate_comic.py --file dream.txt --title "Storm Door" --pdf
    python generate_comic.py --offline --layout grid "..."   # placeholder art only

Collaborators are picked up from the environment (.env is loaded):
ANTHROPIC_API_KEY (scene director), LEONARDO_API_KEY (panel images),
DREAM_COMIC_AUTH_TOKEN + DREAM_COMIC_BACKEND_URL (remote backend).
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

from dream_comic.backend_client import BackendComicService
from dream_comic.comic_generator import ComicSession, GenerationOrchestrator
from dream_comic.config import PipelineSettings
from dream_comic.image_generator import LeonardoImageGenerator
from dream_comic.models import ImageStyle, JobPhase, LayoutStyle
from dream_comic.panel_assembler import export_pdf, save_pages
from dream_comic.scene_director import ClaudeSceneDirector

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)

OUTPUT_ROOT = Path("data/comics")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Dream Comic — turn a dream story into comic pages"
    )
    parser.add_argument(
        "story", nargs="?", default=None,
        help="Story text (or use --file)"
    )
    parser.add_argument(
        "--file", type=str, default=None,
        help="Read the story from a text file"
    )
    parser.add_argument(
        "--title", type=str, default=None,
        help="Title banner for the first page"
    )
    parser.add_argument(
        "--style", choices=[s.value for s in ImageStyle],
        default=ImageStyle.COMIC_BOOK.value,
        help="Image style (default: comic_book)"
    )
    parser.add_argument(
        "--layout", choices=[s.value for s in LayoutStyle],
        default=LayoutStyle.DYNAMIC.value,
        help="Panel layout (default: dynamic)"
    )
    parser.add_argument(
        "--output", type=str, default=None,
        help=f"Output directory (default: {OUTPUT_ROOT}/<timestamp>)"
    )
    parser.add_argument(
        "--pdf", action="store_true",
        help="Also write comic.pdf"
    )
    parser.add_argument(
        "--offline", action="store_true",
        help="Ignore all collaborators: local planning and placeholder art only"
    )
    return parser.parse_args(argv)


def build_orchestrator(offline: bool) -> GenerationOrchestrator:
    settings = PipelineSettings.from_env()
    if offline:
        return GenerationOrchestrator(settings=settings)

    text_generator = ClaudeSceneDirector(
        api_key=settings.anthropic_api_key, model=settings.text_model
    ) if settings.anthropic_api_key else None
    image_generator = LeonardoImageGenerator(
        api_key=settings.leonardo_api_key
    ) if settings.leonardo_api_key else None
    remote_service = BackendComicService(
        base_url=settings.backend_url, auth_token=settings.auth_token
    ) if settings.auth_token else None

    return GenerationOrchestrator(
        text_generator=text_generator,
        image_generator=image_generator,
        remote_service=remote_service,
        settings=settings,
    )


def print_progress(stage: str, details: dict):
    if stage == "panel_rendered":
        status = "ok" if details.get("ok") else "FAILED"
        print(f"  Panel {details['panel']}/{details['total']}: {status}")
    else:
        print(f"[{stage}] {details}")


async def main(argv=None) -> int:
    args = parse_args(argv)

    if args.file:
        story = Path(args.file).read_text(encoding="utf-8")
    else:
        story = args.story
    if not story or not story.strip():
        print("No story given (pass text or --file)")
        return 2

    orchestrator = build_orchestrator(args.offline)
    session = ComicSession(orchestrator)
    try:
        job = await session.run(
            story.strip(),
            title=args.title,
            style=ImageStyle(args.style),
            layout_style=LayoutStyle(args.layout),
            on_progress=print_progress,
        )
    finally:
        await orchestrator.close()

    print("\n" + "=" * 60)
    print(f"JOB: {job.job_id}  PHASE: {job.phase.value}")

    if job.phase is JobPhase.FAILED:
        print(f"ERROR: {job.error}")
        return 1
    if job.phase is JobPhase.CANCELLED:
        return 130

    output_dir = Path(args.output) if args.output else (
        OUTPUT_ROOT / datetime.now().strftime("%Y%m%d_%H%M%S")
    )
    paths = save_pages(job.pages, str(output_dir))
    for path in paths:
        print(f"PAGE: {path}")
    if args.pdf:
        print(f"PDF: {export_pdf(job.pages, str(output_dir / 'comic.pdf'))}")

    print(f"SOURCE: {'remote backend' if job.used_remote else 'local pipeline'}")
    print("=" * 60)
    print("GENERATION LOG:")
    for entry in job.generation_log:
        print(f"  {entry}")
    return 0


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
