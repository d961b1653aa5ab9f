"""
FFmpeg subprocess execution.

Two ways to run an FFmpegInvocation:

- ``run()``: an async stream of events for file-producing transforms.
  Zero or more ``Progress`` events, then exactly one ``Completed`` or
  ``Failed``. Whatever consumes the stream (job store, split pipeline)
  decides what the events mean.
- ``stream()``: the process stdout as byte chunks, for the preview endpoint.

Both enforce a time limit and kill the process when the consumer stops early.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

from vidremix.config import Settings, get_settings
from vidremix.exceptions import TransformFailedError, TransformTimeoutError
from vidremix.render.ffmpeg_command import FFmpegInvocation

logger = logging.getLogger(__name__)

STDERR_TAIL_CHARS = 2000
STREAM_CHUNK_SIZE = 64 * 1024
# How long to wait for stderr to reach EOF after a killed process
STDERR_DRAIN_TIMEOUT_S = 2.0


@dataclass(frozen=True)
class Progress:
    percent: int


@dataclass(frozen=True)
class Completed:
    output: str


@dataclass(frozen=True)
class Failed:
    summary: str
    details: str = ""


TransformEvent = Progress | Completed | Failed


def parse_progress_line(line: str, duration_s: float | None) -> int | None:
    """Convert one ``-progress`` line into a percentage of ``duration_s``.

    Only ``out_time_us`` is used (``out_time_ms`` is also microseconds in
    ffmpeg and is redundant). Returns None for any other line.
    """
    if not duration_s or duration_s <= 0:
        return None
    if not line.startswith("out_time_us="):
        return None
    try:
        time_us = int(line.split("=", 1)[1])
    except ValueError:
        # "N/A" before the first frame is written
        return None
    time_s = max(0, time_us) / 1_000_000
    return min(100, int(time_s / duration_s * 100))


def _tail(stderr: bytes) -> str:
    text = stderr.decode("utf-8", errors="replace").strip()
    return text[-STDERR_TAIL_CHARS:]


async def _drain_stderr(task: asyncio.Task) -> str:
    """Tail of stderr from a process that has just been killed."""
    try:
        return _tail(await asyncio.wait_for(task, timeout=STDERR_DRAIN_TIMEOUT_S))
    except asyncio.TimeoutError:
        return ""


class TransformRunner:
    """Runs ffmpeg invocations as subprocesses."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def _timeout_for(self, invocation: FFmpegInvocation) -> float:
        if invocation.kind == "preview":
            return self.settings.preview_timeout_s
        return self.settings.transform_timeout_s

    async def _spawn(self, invocation: FFmpegInvocation) -> asyncio.subprocess.Process:
        logger.debug(f"[{invocation.kind.upper()}] {invocation}")
        return await asyncio.create_subprocess_exec(
            *invocation.args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

    @staticmethod
    async def _terminate(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()

    async def run(
        self,
        invocation: FFmpegInvocation,
        timeout_s: float | None = None,
    ) -> AsyncIterator[TransformEvent]:
        """Run a file-producing invocation and yield its lifecycle events."""
        tag = invocation.kind.upper()
        timeout = timeout_s if timeout_s is not None else self._timeout_for(invocation)

        try:
            proc = await self._spawn(invocation)
        except OSError as e:
            logger.error(f"[{tag}] Could not start ffmpeg: {e}")
            yield Failed("Could not start ffmpeg", str(e))
            return

        stderr_task = asyncio.create_task(proc.stderr.read())
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        last_percent = -1

        try:
            try:
                while True:
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        raise asyncio.TimeoutError
                    raw_line = await asyncio.wait_for(proc.stdout.readline(), timeout=remaining)
                    if not raw_line:
                        break
                    line = raw_line.decode("utf-8", errors="replace").strip()
                    percent = parse_progress_line(line, invocation.expected_duration_s)
                    if percent is not None and percent > last_percent:
                        last_percent = percent
                        yield Progress(percent)

                returncode = await asyncio.wait_for(
                    proc.wait(), timeout=max(0.0, deadline - loop.time())
                )
            except asyncio.TimeoutError:
                logger.error(f"[{tag}] ffmpeg exceeded {timeout}s, killing process")
                await self._terminate(proc)
                details = await _drain_stderr(stderr_task)
                yield Failed(f"Transform timed out after {timeout}s", details)
                return

            stderr = await stderr_task
            if returncode != 0:
                details = _tail(stderr)
                logger.error(f"[{tag}] ffmpeg exited with code {returncode}: {details}")
                yield Failed(f"ffmpeg exited with code {returncode}", details)
                return

            if not invocation.writes_to_stdout and not Path(invocation.output).exists():
                yield Failed("ffmpeg finished without writing an output file", _tail(stderr))
                return

            logger.info(f"[{tag}] Completed: {invocation.output}")
            yield Completed(invocation.output)
        finally:
            await self._terminate(proc)
            if not stderr_task.done():
                stderr_task.cancel()

    async def stream(
        self,
        invocation: FFmpegInvocation,
        timeout_s: float | None = None,
    ) -> AsyncIterator[bytes]:
        """Yield stdout chunks of a streaming invocation.

        Raises:
            TransformFailedError: If the process fails before producing any
                bytes. Once bytes have been yielded a failure only ends the
                stream early (the response headers are already sent).
        """
        timeout = timeout_s if timeout_s is not None else self._timeout_for(invocation)

        try:
            proc = await self._spawn(invocation)
        except OSError as e:
            raise TransformFailedError("Preview generation failed", details=str(e)) from e

        stderr_task = asyncio.create_task(proc.stderr.read())
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        sent_any = False

        try:
            try:
                while True:
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        raise asyncio.TimeoutError
                    chunk = await asyncio.wait_for(
                        proc.stdout.read(STREAM_CHUNK_SIZE), timeout=remaining
                    )
                    if not chunk:
                        break
                    sent_any = True
                    yield chunk

                returncode = await asyncio.wait_for(
                    proc.wait(), timeout=max(0.0, deadline - loop.time())
                )
            except asyncio.TimeoutError:
                await self._terminate(proc)
                if not sent_any:
                    raise TransformTimeoutError(
                        f"Preview timed out after {timeout}s",
                        details=await _drain_stderr(stderr_task),
                    )
                logger.error(f"[PREVIEW] ffmpeg exceeded {timeout}s mid-stream, truncating")
                return

            if returncode != 0:
                details = _tail(await stderr_task)
                if not sent_any:
                    raise TransformFailedError("Preview generation failed", details=details)
                logger.error(f"[PREVIEW] ffmpeg failed mid-stream (code {returncode}): {details}")
        finally:
            await self._terminate(proc)
            if not stderr_task.done():
                stderr_task.cancel()
