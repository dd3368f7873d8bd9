"""
Dream Comic — Main Orchestrator.

GenerationOrchestrator ties all stages together:
  Story → (remote backend) or (Scenes → Safe prompts → Panels → Pages)

Job phases: idle → planning → rendering_panels → compositing → done,
with cancelled / failed reachable from any non-terminal phase.
ComicSession keeps at most one job running at a time.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from dream_comic.config import PipelineSettings
from dream_comic.content_guard import ContentGuard
from dream_comic.errors import (
    CompositionFailure,
    GenerationCancelled,
    NotSupportedError,
    RenderFailure,
)
from dream_comic.layout import build_page_layout
from dream_comic.models import (
    IMAGE_STYLES,
    ComposedPage,
    DreamerProfile,
    GenerationJob,
    ImageStyle,
    JobPhase,
    LayoutStyle,
    PanelPlan,
    RenderedPanel,
    build_image_prompt,
)
from dream_comic.panel_assembler import PageCompositor
from dream_comic.placeholder_renderer import PlaceholderRenderer
from dream_comic.sanitizer import PromptSanitizer
from dream_comic.scene_classifier import SceneClassifier
from dream_comic.script_parser import (
    MAX_PANELS,
    ScenePrompt,
    ScriptParser,
    fallback_scenes,
    plan_from_story,
)

logger = logging.getLogger(__name__)

IMAGE_TIMEOUT_SECONDS = 360
REMOTE_TIMEOUT_SECONDS = 240

# Progress milestones
PLANNING_PROGRESS = 0.05
RENDERING_START = 0.15
RENDERING_SPAN = 0.75
COMPOSITING_PROGRESS = 0.92


class GenerationOrchestrator:
    """
    End-to-end dream-to-comic generator.

    Usage:
        orchestrator = GenerationOrchestrator(text_generator=ClaudeSceneDirector())
        job = await orchestrator.generate("The cat escaped through a crumbling door...")
        # job.phase, job.pages (ComposedPage list), job.generation_log
    """

    def __init__(
        self,
        text_generator=None,
        image_generator=None,
        remote_service=None,
        settings: Optional[PipelineSettings] = None,
        sanitizer: Optional[PromptSanitizer] = None,
        guard: Optional[ContentGuard] = None,
        classifier: Optional[SceneClassifier] = None,
        renderer: Optional[PlaceholderRenderer] = None,
        compositor: Optional[PageCompositor] = None,
        image_timeout: float = IMAGE_TIMEOUT_SECONDS,
        remote_timeout: float = REMOTE_TIMEOUT_SECONDS,
    ):
        self.settings = settings or PipelineSettings()
        self.text_generator = text_generator
        self.image_generator = image_generator
        self.remote_service = remote_service
        self.sanitizer = sanitizer or PromptSanitizer()
        self.guard = guard or ContentGuard()
        self.classifier = classifier or SceneClassifier()
        self.renderer = renderer or PlaceholderRenderer(size=self.settings.panel_size)
        self.compositor = compositor or PageCompositor(
            page_size=self.settings.page_size,
            border_width=self.settings.border_width,
            margin=self.settings.margin,
        )
        self.script_parser = ScriptParser(text_generator, sanitizer=self.sanitizer)
        self.image_timeout = image_timeout
        self.remote_timeout = remote_timeout
        self.current_job: Optional[GenerationJob] = None
        self._inflight: Optional[asyncio.Future] = None
        self._inflight_cancelled = False

    def cancel(self):
        """
        Stop the running job.

        Sets the job flag and cancels the collaborator call in flight, so
        a slow image model does not hold the job until its timeout.
        """
        if self.current_job is not None and not self.current_job.is_finished:
            self.current_job.request_cancel()
        inflight = self._inflight
        if inflight is not None and not inflight.done():
            self._inflight_cancelled = True
            inflight.cancel()

    async def generate(
        self,
        story: str,
        title: Optional[str] = None,
        style: ImageStyle = ImageStyle.COMIC_BOOK,
        layout_style: LayoutStyle = LayoutStyle.DYNAMIC,
        dreamer_profile: Optional[DreamerProfile] = None,
        on_progress: Optional[Callable] = None,
        job: Optional[GenerationJob] = None,
    ) -> GenerationJob:
        """
        Turn a story into composed comic pages.

        Args:
            story: Dream narrative
            title: Optional banner title for the first page
            style: Image style (prompt suffix, negative prompt, generic palette)
            layout_style: Panel layout for local composition
            dreamer_profile: Optional context for the remote backend
            on_progress: Optional callback(stage: str, details: dict)
            job: Pre-created job to run (ComicSession passes its own)

        Returns:
            The job in a terminal phase: done, cancelled or failed
        """
        job = job or GenerationJob(story=story)
        self.current_job = job

        logger.info("=" * 60)
        logger.info(f"DREAM COMIC [{job.job_id}]: {story[:60]}")
        logger.info("=" * 60)

        try:
            await self._run(job, story, title, style, layout_style, dreamer_profile, on_progress)
        except GenerationCancelled:
            self._mark_cancelled(job)
        except asyncio.CancelledError:
            self._mark_cancelled(job)
            raise
        except Exception as e:
            logger.error(f"Job {job.job_id} failed: {e}", exc_info=not isinstance(e, (NotSupportedError, CompositionFailure)))
            job.error = e
            job.phase = JobPhase.FAILED
            job.status_message = f"Failed: {e}"
            job.log(f"FAILED: {e}")
            self._progress(on_progress, "failed", {"error": str(e)})

        logger.info(f"Job {job.job_id} finished: {job.phase.value} ({len(job.pages)} pages)")
        return job

    async def _run(
        self,
        job: GenerationJob,
        story: str,
        title: Optional[str],
        style: ImageStyle,
        layout_style: LayoutStyle,
        dreamer_profile: Optional[DreamerProfile],
        on_progress: Optional[Callable],
    ):
        if self.settings.start_delay > 0:
            await asyncio.sleep(self.settings.start_delay)
        self._check_cancel(job)

        # === Stage 1: Planning ===
        self._enter(job, JobPhase.PLANNING, PLANNING_PROGRESS, "Analyzing story...")
        self._progress(on_progress, "planning", {"story": story[:80]})

        if await self._remote_ready():
            pages = await self._generate_remote(job, story, dreamer_profile)
            self._check_cancel(job)
            if pages:
                job.used_remote = True
                job.pages = pages
                self._enter(job, JobPhase.DONE, 1.0, "Done")
                job.log(f"Remote backend produced {len(pages)} page(s)")
                self._progress(on_progress, "done", {"pages": len(pages), "remote": True})
                return

        if not self.settings.local_generation_enabled:
            raise NotSupportedError(
                "Comic backend unavailable and local generation is disabled"
            )

        scenes = await self._plan_scenes(job, story)
        self._check_cancel(job)

        layout = build_page_layout(
            [(scene.prompt, scene.story_part) for scene in scenes],
            page_size=self.settings.page_size,
            margin=self.settings.margin,
            gutter=self.settings.gutter,
            style=layout_style,
            panels_per_page=self.settings.panels_per_page,
            top_inset=self.compositor.title_inset(title),
        )
        job.layout = layout
        job.log(f"Planned {layout.panel_count} panels on {len(layout.pages)} page(s)")
        logger.info(f"Planned {layout.panel_count} panels ({layout_style.value})")

        # === Stage 2: Panels ===
        total = layout.panel_count
        self._enter(job, JobPhase.RENDERING_PANELS, RENDERING_START, "Creating comic panels...")
        job.advance(RENDERING_START, f"Generating {total} images...")
        self._progress(on_progress, "rendering", {"panel_count": total})

        for i, plan in enumerate(layout.panels):
            self._check_cancel(job)
            job.advance(job.progress, f"Panel {i + 1}/{total}: Generating...")

            rendered = await self._render_panel(job, plan, style)
            if rendered is not None:
                job.rendered_panels.append(rendered)

            job.advance(RENDERING_START + RENDERING_SPAN * (i + 1) / total)
            self._progress(on_progress, "panel_rendered", {
                "panel": i + 1,
                "total": total,
                "ok": rendered is not None,
            })

        self._check_cancel(job)

        # === Stage 3: Pages ===
        self._enter(job, JobPhase.COMPOSITING, COMPOSITING_PROGRESS, "Assembling pages...")
        self._progress(on_progress, "compositing", {"pages": len(layout.pages)})

        pages = []
        for page in layout.pages:
            rendered = [r for r in job.rendered_panels if r.page_number == page.page_number]
            try:
                image_bytes = self.compositor.compose(
                    rendered,
                    page.frames,
                    style=layout_style,
                    title=title if page.page_number == 1 else None,
                    page_number=page.page_number,
                )
            except CompositionFailure as e:
                logger.error(f"Page {page.page_number} skipped: {e}")
                job.log(f"Page {page.page_number} FAILED: {e}")
                continue
            pages.append(ComposedPage(page_number=page.page_number, image_bytes=image_bytes))

        self._check_cancel(job)
        if not pages:
            raise CompositionFailure("No page could be composed")

        job.pages = pages
        self._enter(job, JobPhase.DONE, 1.0, "Done")
        job.log(f"Composed {len(pages)} page(s)")
        self._progress(on_progress, "done", {"pages": len(pages), "remote": False})

    # ============================================================
    # Planning
    # ============================================================

    async def _remote_ready(self) -> bool:
        remote = self.remote_service
        if remote is None or not remote.is_authorized:
            return False
        try:
            return await remote.is_reachable()
        except Exception as e:
            logger.warning(f"Comic backend probe failed: {e}")
            return False

    async def _generate_remote(
        self,
        job: GenerationJob,
        story: str,
        dreamer_profile: Optional[DreamerProfile],
    ) -> list[ComposedPage]:
        """Pages from the backend, or [] to fall back to local generation."""
        job.log("Delegating to comic backend")
        try:
            images = await self._call(
                job,
                self.remote_service.generate_comic_pages(story, dreamer_profile),
                self.remote_timeout,
            )
        except GenerationCancelled:
            raise
        except asyncio.TimeoutError:
            logger.warning(f"Comic backend timed out after {self.remote_timeout}s - generating locally")
            job.log("Backend timed out - falling back to local generation")
            return []
        except Exception as e:
            logger.warning(f"Comic backend failed ({e}) - generating locally")
            job.log(f"Backend failed: {e}")
            return []

        return [
            ComposedPage(page_number=i + 1, image_bytes=image)
            for i, image in enumerate(images or [])
            if image
        ]

    async def _plan_scenes(self, job: GenerationJob, story: str) -> list[ScenePrompt]:
        """1-4 scenes with safe prompts, in story order."""
        generator = self.text_generator
        if generator is not None and generator.is_available():
            try:
                scenes = await self._call(job, self.script_parser.request_scenes(story))
            except GenerationCancelled:
                raise
            except Exception as e:
                logger.warning(f"Visual director failed ({e}) - using stock scenes")
                job.log(f"Scene planning fell back to stock scenes: {e}")
                scenes = fallback_scenes()
        else:
            scenes = plan_from_story(story, self.sanitizer)
            if not scenes:
                logger.warning("Story has no usable sentences - using stock scenes")
                scenes = fallback_scenes()

        safe = []
        for scene in scenes[:MAX_PANELS]:
            prompt = self.guard.ensure_clean(self.sanitizer.sanitize(scene.prompt))
            if not prompt:
                prompt = self.guard.fallback(scene.prompt)
            caption = self.sanitizer.sanitize(scene.story_part) if scene.story_part else None
            safe.append(ScenePrompt(prompt=prompt, story_part=caption or None))
        return safe

    # ============================================================
    # Rendering
    # ============================================================

    async def _render_panel(
        self, job: GenerationJob, plan: PanelPlan, style: ImageStyle
    ) -> Optional[RenderedPanel]:
        """One panel via the image model, else the placeholder. None on failure."""
        started = time.monotonic()
        generator = self.image_generator

        if generator is not None and generator.is_available():
            prompt = build_image_prompt(plan.prompt, style)
            try:
                if generator.supports_negative_prompt:
                    call = generator.generate(prompt, IMAGE_STYLES[style]["negative"])
                else:
                    call = generator.generate(prompt)
                image_bytes = await self._call(job, call, self.image_timeout)
                job.log(f"Page {plan.page_number} panel {plan.index + 1}: image model")
                return RenderedPanel(
                    index=plan.index,
                    page_number=plan.page_number,
                    image_bytes=image_bytes,
                    source_prompt=plan.prompt,
                    generation_latency=time.monotonic() - started,
                    renderer="image_model",
                )
            except GenerationCancelled:
                raise
            except asyncio.TimeoutError:
                logger.warning(
                    f"Panel {plan.index + 1}: image model timed out - using placeholder"
                )
            except Exception as e:
                logger.warning(f"Panel {plan.index + 1}: image model failed ({e}) - using placeholder")

        try:
            scene = self.classifier.classify(plan.prompt, style)
            image_bytes = self.renderer.render(plan.prompt, scene)
        except Exception as e:
            failure = RenderFailure(f"Panel {plan.index + 1} could not be rendered: {e}", panel_index=plan.index)
            logger.error(str(failure))
            job.log(f"Page {plan.page_number} panel {plan.index + 1} FAILED: {e}")
            return None

        job.log(f"Page {plan.page_number} panel {plan.index + 1}: placeholder ({scene.archetype.value})")
        return RenderedPanel(
            index=plan.index,
            page_number=plan.page_number,
            image_bytes=image_bytes,
            source_prompt=plan.prompt,
            generation_latency=time.monotonic() - started,
            archetype=scene.archetype,
        )

    # ============================================================
    # Job bookkeeping
    # ============================================================

    async def _call(self, job: GenerationJob, call, timeout: Optional[float] = None):
        """Await a collaborator call that cancel() can interrupt."""
        self._inflight = asyncio.ensure_future(call)
        self._inflight_cancelled = False
        try:
            return await asyncio.wait_for(self._inflight, timeout=timeout)
        except asyncio.CancelledError:
            if not self._inflight_cancelled:
                raise
            raise GenerationCancelled(f"Job {job.job_id} cancelled") from None
        finally:
            self._inflight = None

    def _check_cancel(self, job: GenerationJob):
        if job.cancel_requested:
            raise GenerationCancelled(f"Job {job.job_id} cancelled")

    def _enter(self, job: GenerationJob, phase: JobPhase, progress: float, message: str):
        job.phase = phase
        job.advance(progress, message)
        logger.info(f"[{job.job_id}] {phase.value}: {message}")

    def _mark_cancelled(self, job: GenerationJob):
        job.phase = JobPhase.CANCELLED
        job.status_message = "Cancelled"
        job.pages = []
        job.rendered_panels = []
        job.log("CANCELLED")
        logger.info(f"Job {job.job_id} cancelled")

    def _progress(self, callback, stage: str, details: dict):
        """Report progress if callback is set."""
        if callback:
            try:
                callback(stage, details)
            except Exception as e:
                logger.debug(f"Progress callback raised: {e}")

    async def close(self):
        """Clean up collaborator resources."""
        for collaborator in (self.text_generator, self.image_generator, self.remote_service):
            if collaborator is not None and hasattr(collaborator, "close"):
                await collaborator.close()


class ComicSession:
    """
    Runs at most one generation job at a time.

    Starting a new job cancels the one in flight and waits for it to
    wind down first.
    """

    def __init__(self, orchestrator: GenerationOrchestrator):
        self.orchestrator = orchestrator
        self.current_job: Optional[GenerationJob] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, story: str, **kwargs) -> GenerationJob:
        """Cancel any running job, then start a new one in the background."""
        await self.cancel()
        job = GenerationJob(story=story)
        self.current_job = job
        self._task = asyncio.create_task(self.orchestrator.generate(story, job=job, **kwargs))
        return job

    async def wait(self) -> Optional[GenerationJob]:
        """Wait for the current job to reach a terminal phase."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
        return self.current_job

    async def run(self, story: str, **kwargs) -> GenerationJob:
        await self.start(story, **kwargs)
        return await self.wait()

    async def cancel(self):
        """Cancel the running job (if any) and wait until it has stopped."""
        job = self.current_job
        if job is not None and not job.is_finished:
            job.request_cancel()
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._task = None
        if job is not None and not job.is_finished:
            # Task was cancelled before it got to run
            job.phase = JobPhase.CANCELLED
            job.status_message = "Cancelled"
