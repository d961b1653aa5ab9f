"""
FFmpeg invocation construction.

Builds the argv for the three kinds of transforms:
- preview: short, fast, fragmented MP4 written to stdout for progressive playback
- export: full-length, higher quality file with machine-readable progress
- extract: stream-copy of one time range (used by the split pipeline)

When a background music track is supplied the audio is wired through a
filter_complex graph (two inputs merge into one audio output); otherwise the
chains are attached as simple per-stream filters.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from vidremix.config import Settings, get_settings
from vidremix.render.filter_graph import FilterGraph, format_number

logger = logging.getLogger(__name__)

PIPE_OUTPUT = "pipe:1"
STREAMING_MOVFLAGS = "frag_keyframe+empty_moov+faststart"


@dataclass
class FFmpegInvocation:
    """A fully built ffmpeg command."""

    args: list[str]
    output: str
    kind: str
    # Expected length of the output; used to turn out_time into a percentage
    expected_duration_s: float | None = None
    inputs: list[str] = field(default_factory=list)

    @property
    def writes_to_stdout(self) -> bool:
        return self.output == PIPE_OUTPUT

    def __str__(self) -> str:
        return " ".join(self.args)


def build_mix_filter_complex(
    graph: FilterGraph,
    bgm_volume: float,
    sample_rate: int,
    source_has_audio: bool = True,
) -> tuple[str, str, str]:
    """Build the filter_complex graph that mixes background music into input 0.

    Returns:
        Tuple of (filter_complex, video map target, audio map target)
    """
    parts: list[str] = []

    if graph.video:
        parts.append(f"[0:v]{graph.video_chain}[v]")
        video_map = "[v]"
    else:
        video_map = "0:v"

    aformat = (
        f"aformat=sample_fmts=fltp:sample_rates={sample_rate}:channel_layouts=stereo"
    )
    if source_has_audio:
        parts.append(f"[1:a]volume={format_number(bgm_volume)}[bgm]")
        main_chain = f"{graph.audio_chain}," if graph.audio else ""
        parts.append(f"[0:a]{main_chain}{aformat}[a0]")
        parts.append("[a0][bgm]amix=inputs=2:duration=shortest:dropout_transition=2[a]")
    else:
        # Silent source: the music becomes the only audio track
        parts.append(f"[1:a]volume={format_number(bgm_volume)},{aformat}[a]")

    return ";".join(parts), video_map, "[a]"


class FFmpegCommandBuilder:
    """Builds ffmpeg invocations from settings, filter graphs and sources."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def _filter_args(
        self,
        graph: FilterGraph,
        bgm_path: Path | None,
        bgm_volume: float | None,
        source_has_audio: bool,
    ) -> list[str]:
        """Filter and stream mapping arguments (after all inputs)."""
        if bgm_path is None:
            args: list[str] = []
            if graph.video:
                args.extend(["-vf", graph.video_chain])
            if graph.audio and source_has_audio:
                args.extend(["-af", graph.audio_chain])
            return args

        volume = self.settings.default_bgm_volume if bgm_volume is None else bgm_volume
        filter_complex, video_map, audio_map = build_mix_filter_complex(
            graph,
            volume,
            self.settings.mix_sample_rate,
            source_has_audio=source_has_audio,
        )
        args = [
            "-filter_complex", filter_complex,
            "-map", video_map,
            "-map", audio_map,
        ]
        if not source_has_audio:
            args.append("-shortest")
        return args

    def _inputs(self, source: Path, bgm_path: Path | None, seek_s: float | None = None) -> list[str]:
        args: list[str] = []
        if seek_s:
            args.extend(["-ss", format_number(seek_s)])
        args.extend(["-i", str(source)])
        if bgm_path is not None:
            args.extend(["-i", str(bgm_path)])
        return args

    def build_preview(
        self,
        source: Path,
        graph: FilterGraph,
        start_s: float = 0.0,
        duration_s: float = 5.0,
        bgm_path: Path | None = None,
        bgm_volume: float | None = None,
        source_has_audio: bool = True,
    ) -> FFmpegInvocation:
        """Build a low-latency preview written to stdout as fragmented MP4."""
        start_s = max(0.0, start_s)
        args = [
            self.settings.ffmpeg_path,
            "-hide_banner",
            "-loglevel", "error",
            *self._inputs(source, bgm_path, seek_s=start_s),
            *self._filter_args(graph, bgm_path, bgm_volume, source_has_audio),
            "-t", format_number(duration_s),
            "-c:v", "libx264",
            "-preset", self.settings.preview_video_preset,
            "-crf", str(self.settings.preview_crf),
            "-pix_fmt", "yuv420p",
            "-c:a", "aac",
            "-movflags", STREAMING_MOVFLAGS,
            "-f", "mp4",
            PIPE_OUTPUT,
        ]
        return FFmpegInvocation(
            args=args,
            output=PIPE_OUTPUT,
            kind="preview",
            expected_duration_s=duration_s,
            inputs=[str(source)] + ([str(bgm_path)] if bgm_path else []),
        )

    def build_export(
        self,
        source: Path,
        graph: FilterGraph,
        output_path: Path,
        duration_s: float | None = None,
        bgm_path: Path | None = None,
        bgm_volume: float | None = None,
        source_has_audio: bool = True,
    ) -> FFmpegInvocation:
        """Build a full-length export to a file with progress on stdout."""
        args = [
            self.settings.ffmpeg_path,
            "-y",
            "-hide_banner",
            "-nostats",
            *self._inputs(source, bgm_path),
            *self._filter_args(graph, bgm_path, bgm_volume, source_has_audio),
            "-c:v", "libx264",
            "-preset", self.settings.export_video_preset,
            "-crf", str(self.settings.export_crf),
            "-pix_fmt", "yuv420p",
            "-c:a", "aac",
            "-movflags", "+faststart",
            "-progress", PIPE_OUTPUT,
            str(output_path),
        ]
        return FFmpegInvocation(
            args=args,
            output=str(output_path),
            kind="export",
            expected_duration_s=duration_s,
            inputs=[str(source)] + ([str(bgm_path)] if bgm_path else []),
        )

    def build_extract(
        self,
        source: Path,
        output_path: Path,
        start_s: float,
        end_s: float,
    ) -> FFmpegInvocation:
        """Build a stream-copy extraction of [start_s, end_s).

        Seeking before the input is fast but snaps to the nearest keyframe.
        """
        duration_s = end_s - start_s
        args = [
            self.settings.ffmpeg_path,
            "-y",
            "-hide_banner",
            "-nostats",
            "-ss", format_number(start_s),
            "-i", str(source),
            "-t", format_number(duration_s),
            "-c", "copy",
            "-avoid_negative_ts", "make_zero",
            "-progress", PIPE_OUTPUT,
            str(output_path),
        ]
        return FFmpegInvocation(
            args=args,
            output=str(output_path),
            kind="extract",
            expected_duration_s=duration_s,
            inputs=[str(source)],
        )
