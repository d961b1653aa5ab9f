from vidremix.schemas.options import (
    DownloadResponse,
    ExportRequest,
    ExportResponse,
    PreviewParams,
    Segment,
    SplitRequest,
    TransformOptions,
)

__all__ = [
    "TransformOptions",
    "PreviewParams",
    "ExportRequest",
    "ExportResponse",
    "Segment",
    "SplitRequest",
    "DownloadResponse",
]
