"""
VideoGenerationService: sequences one garment video run.

  Validate → Upload originals (10%) → Enhance (25%) → Side angles (50%)
           → Video (80%) → Complete (100%)

Each phase emits its progress event on entry, before doing its work. Every
successful upload is recorded on the run; if anything fatal happens the run
emits one error event, deletes everything it uploaded, and closes the channel.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from .. import metrics
from .angles import AngleSynthesizer, generate_side_angles
from .animate import VideoSynthesizer, ViewSet, generate_video
from .enhance import Enhanced, ImageEnhancer, enhance_image
from .errors import ValidationFailure
from .models import (
    COST_SCHEDULE,
    PHASES,
    VIDEO_CONTENT_TYPE,
    ArtifactReference,
    Bucket,
    CostSchedule,
    EventStatus,
    ImageAsset,
    ImageRole,
    MediaType,
    PhaseInfo,
    PipelineResult,
    PipelineStatus,
    ProgressEvent,
    StoredImage,
)
from .progress import ProgressChannel
from .storage import ArtifactStore, generate_filename

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "An error occurred during video generation"


@dataclass
class PipelineRun:
    """Request-scoped state. Never shared between runs."""
    run_id: str
    front: Optional[ImageAsset]
    back: Optional[ImageAsset]
    status: PipelineStatus = PipelineStatus.VALIDATING
    phase: Optional[PhaseInfo] = None
    uploaded: list[ArtifactReference] = field(default_factory=list)
    costs: CostSchedule = COST_SCHEDULE
    result: Optional[PipelineResult] = None
    error: Optional[str] = None


class VideoGenerationService:
    """
    Pipeline orchestrator. Collaborators are injected so runs can be
    exercised against fakes.

    Usage:
        service = VideoGenerationService(store, enhancer, angles, video)
        channel = service.start(front_asset, back_asset)
        async for event in channel:
            ...
    """

    def __init__(
        self,
        store: ArtifactStore,
        enhancer: ImageEnhancer,
        angle_synthesizer: AngleSynthesizer,
        video_synthesizer: VideoSynthesizer,
    ):
        self.store = store
        self.enhancer = enhancer
        self.angle_synthesizer = angle_synthesizer
        self.video_synthesizer = video_synthesizer
        self._tasks: set[asyncio.Task] = set()

    def start(
        self,
        front: Optional[ImageAsset],
        back: Optional[ImageAsset],
        run_id: Optional[str] = None,
    ) -> ProgressChannel:
        """Launch a run on its own task and return the channel it reports to."""
        run_id = run_id or uuid.uuid4().hex[:12]
        channel = ProgressChannel(run_id)
        task = asyncio.create_task(self.run(front, back, channel))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return channel

    # ── Run ──────────────────────────────────────────────────────────────

    async def run(
        self,
        front: Optional[ImageAsset],
        back: Optional[ImageAsset],
        channel: ProgressChannel,
    ) -> PipelineRun:
        run = PipelineRun(run_id=channel.run_id or uuid.uuid4().hex[:12], front=front, back=back)
        started = time.monotonic()
        metrics.inc_counter("runs.started")
        logger.info(f"[{run.run_id}] run started")

        try:
            self._validate(run)
            await self._execute(run, channel)
            run.status = PipelineStatus.SUCCEEDED
            metrics.inc_counter("runs.succeeded")
        except Exception as e:
            failed_in = run.status
            logger.error(f"[{run.run_id}] pipeline failed in {failed_in.value}: {e}", exc_info=True)
            run.status = PipelineStatus.FAILED
            run.error = str(e) or DEFAULT_ERROR_MESSAGE
            metrics.inc_counter("runs.failed")
            metrics.record_error(run.run_id, failed_in.value, type(e).__name__, run.error)

            channel.emit(ProgressEvent(
                step=run.phase.step if run.phase else None,
                progress=run.phase.progress if run.phase else None,
                message=run.error,
                status=EventStatus.ERROR,
                error=True,
            ))
            await self._rollback(run)
        finally:
            channel.close()
            metrics.record_latency("run", (time.monotonic() - started) * 1000)

        logger.info(f"[{run.run_id}] run finished: {run.status.value}")
        return run

    async def _execute(self, run: PipelineRun, channel: ProgressChannel) -> None:
        # ── Step 1: Upload originals ─────────────────────────────────────
        self._enter(run, channel, PipelineStatus.UPLOADING_ORIGINALS)
        front = await self._store_image(run, run.front, Bucket.SOURCE_IMAGES)
        back = await self._store_image(run, run.back, Bucket.SOURCE_IMAGES)

        # ── Step 2: Enhancement (fail-open) ──────────────────────────────
        self._enter(run, channel, PipelineStatus.ENHANCING)
        enhanced_front_asset = await self._enhance(run, run.front, ImageRole.ENHANCED_FRONT)
        enhanced_back_asset = await self._enhance(run, run.back, ImageRole.ENHANCED_BACK)
        enhanced_front = await self._store_image(run, enhanced_front_asset, Bucket.ENHANCED_IMAGES)
        enhanced_back = await self._store_image(run, enhanced_back_asset, Bucket.ENHANCED_IMAGES)

        # ── Step 3: Side angles ──────────────────────────────────────────
        self._enter(run, channel, PipelineStatus.SYNTHESIZING_ANGLES)
        left_asset, right_asset = await generate_side_angles(
            self.angle_synthesizer, enhanced_front, enhanced_back
        )
        left = await self._store_image(run, left_asset, Bucket.GENERATED_ANGLES)
        right = await self._store_image(run, right_asset, Bucket.GENERATED_ANGLES)

        # ── Step 4: Video ────────────────────────────────────────────────
        self._enter(run, channel, PipelineStatus.SYNTHESIZING_VIDEO)
        video = await generate_video(
            self.video_synthesizer,
            ViewSet(front=enhanced_front, back=enhanced_back, left=left, right=right),
        )
        video_ref = await self._upload(
            run, video, Bucket.GENERATED_VIDEOS, generate_filename("video", "mp4"), VIDEO_CONTENT_TYPE
        )

        # ── Step 5: Done ─────────────────────────────────────────────────
        run.result = PipelineResult(
            video_url=video_ref.url,
            generated_images=[front.url, back.url, left.url, right.url],
            enhanced_images=[enhanced_front.url, enhanced_back.url],
            costs=run.costs,
        )
        self._enter(run, channel, PipelineStatus.FINALIZING, result=run.result)

    # ── Helpers ──────────────────────────────────────────────────────────

    def _validate(self, run: PipelineRun) -> None:
        if run.front is None or run.back is None:
            raise ValidationFailure("Both frontImage and backImage are required")

        for label, asset in (("front", run.front), ("back", run.back)):
            if not asset.data:
                raise ValidationFailure(f"The {label} image is empty")

    def _enter(
        self,
        run: PipelineRun,
        channel: ProgressChannel,
        status: PipelineStatus,
        result: Optional[PipelineResult] = None,
    ) -> None:
        phase = PHASES[status]
        run.status = status
        run.phase = phase
        logger.info(f"[{run.run_id}] {status.value} → {phase.message} ({phase.progress}%)")
        channel.emit(ProgressEvent(
            step=phase.step,
            progress=phase.progress,
            message=phase.message,
            status=EventStatus.COMPLETE if result is not None else EventStatus.PROCESSING,
            result=result,
        ))

    async def _enhance(self, run: PipelineRun, asset: ImageAsset, role: ImageRole) -> ImageAsset:
        outcome = await enhance_image(
            self.enhancer, asset.data, asset.role.value, asset.media_type
        )
        if not isinstance(outcome, Enhanced):
            metrics.inc_counter("enhancement.fallback")
            logger.info(f"[{run.run_id}] {asset.role.value} continues unenhanced ({outcome.reason})")
        return ImageAsset(
            data=outcome.data,
            media_type=MediaType.sniff(outcome.data, asset.media_type),
            role=role,
        )

    async def _store_image(self, run: PipelineRun, asset: ImageAsset, bucket: Bucket) -> StoredImage:
        key = generate_filename(asset.role.value, asset.media_type.extension)
        ref = await self._upload(run, asset.data, bucket, key, asset.media_type.value)
        return StoredImage(asset=asset, ref=ref)

    async def _upload(
        self, run: PipelineRun, data: bytes, bucket: Bucket, key: str, content_type: str
    ) -> ArtifactReference:
        ref = await self.store.upload(data, bucket, key, content_type)
        run.uploaded.append(ref)
        return ref

    async def _rollback(self, run: PipelineRun) -> None:
        """Delete every artifact this run uploaded. Failures are logged, never raised."""
        if not run.uploaded:
            return

        logger.info(f"[{run.run_id}] rolling back {len(run.uploaded)} upload(s)")
        for ref in run.uploaded:
            try:
                deleted = await self.store.delete(ref)
            except Exception as e:
                logger.error(f"[{run.run_id}] cleanup error for {ref.bucket.value}/{ref.key}: {e}")
                deleted = False

            metrics.inc_counter("rollback.deleted" if deleted else "rollback.failed")
