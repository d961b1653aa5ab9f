from vidremix.render.ffmpeg_command import FFmpegCommandBuilder, FFmpegInvocation
from vidremix.render.filter_graph import (
    FilterGraph,
    build_audio_filters,
    build_filter_graph,
    build_video_filters,
)
from vidremix.render.transform_runner import (
    Completed,
    Failed,
    Progress,
    TransformEvent,
    TransformRunner,
)

__all__ = [
    "FilterGraph",
    "build_filter_graph",
    "build_video_filters",
    "build_audio_filters",
    "FFmpegCommandBuilder",
    "FFmpegInvocation",
    "TransformRunner",
    "TransformEvent",
    "Progress",
    "Completed",
    "Failed",
]
