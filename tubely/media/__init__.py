"""Local media handling: staging, ffprobe inspection and ffmpeg remuxing."""

from tubely.media.faststart import FastStartError, FastStartRewriter, FFmpegFastStartRewriter
from tubely.media.object_key import derive_object_key, generate_token
from tubely.media.probe import AspectClass, FFprobeMediaProbe, MediaProbe, MediaProbeError, VideoGeometry
from tubely.media.staging import StagedFile, StagingArea
from tubely.media.tools import ToolError, run_tool

__all__ = [
    "AspectClass",
    "FastStartError",
    "FastStartRewriter",
    "FFmpegFastStartRewriter",
    "FFprobeMediaProbe",
    "MediaProbe",
    "MediaProbeError",
    "StagedFile",
    "StagingArea",
    "ToolError",
    "VideoGeometry",
    "derive_object_key",
    "generate_token",
    "run_tool",
]
