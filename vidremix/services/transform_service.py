"""Preview and export orchestration.

Both paths share the same steps: resolve the source, probe it, build the
filter graph, optionally pick background music, then hand an
FFmpegInvocation to the runner. They differ in what consumes the runner:
the preview is streamed straight back to the client, the export is driven
as a job whose events are written to the JobStore.
"""

import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

from vidremix.config import Settings, get_settings
from vidremix.exceptions import TransformFailedError
from vidremix.render.ffmpeg_command import FFmpegCommandBuilder, FFmpegInvocation
from vidremix.render.filter_graph import DEFAULT_SAMPLE_RATE, FilterGraph, build_filter_graph
from vidremix.render.transform_runner import Completed, Failed, Progress, TransformRunner
from vidremix.schemas.options import TransformOptions
from vidremix.services.bgm_library import BgmLibrary
from vidremix.services.job_store import JobStore
from vidremix.services.media_storage import MediaStorage
from vidremix.utils.media_info import MediaInfo, probe_media

logger = logging.getLogger(__name__)


@dataclass
class PreparedTransform:
    """Everything needed to build an invocation for one source."""

    source: Path
    info: MediaInfo
    graph: FilterGraph
    bgm_path: Path | None
    bgm_volume: float | None


class TransformService:
    def __init__(
        self,
        storage: MediaStorage,
        runner: TransformRunner,
        bgm_library: BgmLibrary,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.storage = storage
        self.runner = runner
        self.bgm_library = bgm_library
        self.commands = FFmpegCommandBuilder(self.settings)

    async def prepare(self, source: Path, options: TransformOptions) -> PreparedTransform:
        """Probe the source and build its filter graph.

        Raises:
            TransformFailedError: If the source can no longer be probed
        """
        try:
            info = await probe_media(str(source))
        except RuntimeError as e:
            raise TransformFailedError("Could not read source media", details=str(e)) from e

        graph = build_filter_graph(options, info.sample_rate or DEFAULT_SAMPLE_RATE)
        bgm_path = self.bgm_library.pick() if options.add_bgm else None
        return PreparedTransform(
            source=source,
            info=info,
            graph=graph,
            bgm_path=bgm_path,
            bgm_volume=options.bgm_volume,
        )

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def build_preview_invocation(
        self,
        prepared: PreparedTransform,
        start_s: float,
        duration_s: float,
    ) -> FFmpegInvocation:
        duration_s = min(duration_s, self.settings.preview_max_duration_s)
        return self.commands.build_preview(
            prepared.source,
            prepared.graph,
            start_s=start_s,
            duration_s=duration_s,
            bgm_path=prepared.bgm_path,
            bgm_volume=prepared.bgm_volume,
            source_has_audio=prepared.info.has_audio,
        )

    async def open_preview(
        self,
        file_id: str,
        options: TransformOptions,
        start_s: float = 0.0,
        duration_s: float = 5.0,
    ) -> AsyncIterator[bytes]:
        """Start a preview and wait for its first bytes.

        Failures before any output raise here, so the caller can still send
        a structured error response. The returned iterator yields the first
        chunk followed by the rest of the stream.
        """
        source = self.storage.resolve_upload(file_id)
        prepared = await self.prepare(source, options)
        invocation = self.build_preview_invocation(prepared, start_s, duration_s)
        logger.info(
            f"[PREVIEW] {file_id} start={start_s}s duration={invocation.expected_duration_s}s "
            f"bgm={prepared.bgm_path.name if prepared.bgm_path else None}"
        )

        chunks = self.runner.stream(invocation)
        try:
            first = await chunks.__anext__()
        except StopAsyncIteration:
            first = b""

        async def _body() -> AsyncIterator[bytes]:
            try:
                if first:
                    yield first
                async for chunk in chunks:
                    yield chunk
            finally:
                await chunks.aclose()

        return _body()

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def submit_export(self, jobs: JobStore, file_id: str) -> tuple[str, Path]:
        """Validate the source and register a queued job.

        Returns:
            Tuple of (job id, source path)
        """
        source = self.storage.resolve_upload(file_id)
        job_id = str(uuid.uuid4())
        jobs.create(job_id)
        logger.info(f"[EXPORT] Job {job_id} queued for {file_id}")
        return job_id, source

    async def run_export(
        self,
        jobs: JobStore,
        job_id: str,
        source: Path,
        options: TransformOptions,
    ) -> None:
        """Drive an export job to a terminal state.

        This coroutine is the only writer of ``job_id`` in the store; any
        unexpected error becomes the job's terminal error state.
        """
        try:
            await self._run_export(jobs, job_id, source, options)
        except Exception as e:
            logger.exception(f"[EXPORT] Job {job_id} crashed")
            jobs.mark_failed(job_id, "Export failed", str(e))

    async def _run_export(
        self,
        jobs: JobStore,
        job_id: str,
        source: Path,
        options: TransformOptions,
    ) -> None:
        jobs.mark_running(job_id)
        try:
            prepared = await self.prepare(source, options)
        except TransformFailedError as e:
            jobs.mark_failed(job_id, e.message, e.details)
            return

        output_path = self.storage.new_output_path(".mp4", stem=job_id)
        invocation = self.commands.build_export(
            prepared.source,
            prepared.graph,
            output_path,
            duration_s=prepared.info.duration_s,
            bgm_path=prepared.bgm_path,
            bgm_volume=prepared.bgm_volume,
            source_has_audio=prepared.info.has_audio,
        )

        async for event in self.runner.run(invocation):
            if isinstance(event, Progress):
                jobs.mark_running(job_id, event.percent)
            elif isinstance(event, Completed):
                jobs.mark_completed(job_id, self.storage.download_url(Path(event.output)))
                logger.info(f"[EXPORT] Job {job_id} completed")
            elif isinstance(event, Failed):
                jobs.mark_failed(job_id, f"Export failed: {event.summary}", event.details)
                logger.error(f"[EXPORT] Job {job_id} failed: {event.summary}")

        if not jobs.get(job_id).is_terminal:
            jobs.mark_failed(job_id, "Export failed: transform ended without a result")
