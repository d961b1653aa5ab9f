"""Split a source into clips and bundle them into one ZIP archive.

Clips are extracted one at a time with stream copy (no re-encode, cuts snap
to keyframes) and appended to the archive as each one finishes. The archive
is only handed out once every clip succeeded.
"""

import logging
import math
import uuid
import zipfile
from collections.abc import Sequence
from pathlib import Path

from vidremix.exceptions import InvalidSegmentsError, TransformFailedError
from vidremix.render.ffmpeg_command import FFmpegCommandBuilder
from vidremix.render.transform_runner import Completed, Failed, TransformRunner
from vidremix.services.media_storage import DEFAULT_EXTENSION, MediaStorage

logger = logging.getLogger(__name__)

ZIP_COMPRESSION_LEVEL = 9


def validate_ranges(ranges: Sequence[tuple[float, float]]) -> list[tuple[float, float]]:
    """Check split ranges before any subprocess is spawned."""
    if not ranges:
        raise InvalidSegmentsError()
    validated = []
    for i, (start, end) in enumerate(ranges):
        if not (math.isfinite(start) and math.isfinite(end)):
            raise InvalidSegmentsError("start and end must be finite numbers", index=i)
        if start < 0:
            raise InvalidSegmentsError("start must not be negative", index=i)
        if end <= start:
            raise InvalidSegmentsError("end must be greater than start", index=i)
        validated.append((float(start), float(end)))
    return validated


class SplitArchiver:
    def __init__(
        self,
        storage: MediaStorage,
        runner: TransformRunner,
        commands: FFmpegCommandBuilder | None = None,
    ):
        self.storage = storage
        self.runner = runner
        self.commands = commands or FFmpegCommandBuilder(storage.settings)

    async def _extract(self, source: Path, clip_path: Path, start: float, end: float) -> Path:
        invocation = self.commands.build_extract(source, clip_path, start, end)
        outcome: Completed | Failed | None = None
        async for event in self.runner.run(invocation):
            if isinstance(event, (Completed, Failed)):
                outcome = event

        if isinstance(outcome, Completed):
            return Path(outcome.output)
        if isinstance(outcome, Failed):
            raise TransformFailedError(f"Split failed: {outcome.summary}", details=outcome.details)
        raise TransformFailedError("Split failed: extraction ended without a result")

    async def split(self, source: Path, ranges: Sequence[tuple[float, float]]) -> Path:
        """Extract each range into its own clip and archive them.

        Args:
            source: Uploaded source file
            ranges: Ordered (start, end) pairs in seconds

        Returns:
            Path of the finished archive in the output directory

        Raises:
            InvalidSegmentsError: If a range is malformed
            TransformFailedError: If any extraction fails; no archive is kept
        """
        ranges = validate_ranges(ranges)
        archive_id = str(uuid.uuid4())
        ext = source.suffix or DEFAULT_EXTENSION
        archive_path = self.storage.new_output_path(".zip", stem=archive_id)
        partial_path = archive_path.with_name(archive_path.name + ".part")

        logger.info(f"[SPLIT] {source.name}: {len(ranges)} clips -> {archive_path.name}")

        try:
            with zipfile.ZipFile(
                partial_path,
                "w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=ZIP_COMPRESSION_LEVEL,
            ) as archive:
                for i, (start, end) in enumerate(ranges, start=1):
                    clip_path = self.storage.new_output_path(ext, stem=f"{archive_id}_clip_{i}")
                    await self._extract(source, clip_path, start, end)
                    archive.write(clip_path, arcname=f"clip_{i}{ext}")
                    logger.info(f"[SPLIT] Clip {i}/{len(ranges)} added ({start}s - {end}s)")
        except BaseException:
            # Extracted clips stay behind for retention cleanup
            partial_path.unlink(missing_ok=True)
            raise

        partial_path.rename(archive_path)
        return archive_path
