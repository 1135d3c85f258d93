from __future__ import annotations

import enum
import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Protocol

from .tools import ToolError, run_tool

RATIO_TOLERANCE = 0.01
LANDSCAPE_RATIO = 16.0 / 9.0
PORTRAIT_RATIO = 9.0 / 16.0


class AspectClass(str, enum.Enum):
    landscape = "landscape"
    portrait = "portrait"
    other = "other"


class MediaProbeError(Exception):
    """ffprobe failed or reported nothing usable for the staged file."""


@dataclass(frozen=True, slots=True)
class VideoGeometry:
    width: int
    height: int

    @property
    def ratio(self) -> float:
        return self.width / self.height

    @property
    def orientation(self) -> AspectClass:
        return classify_aspect_ratio(self.width, self.height)


class MediaProbe(Protocol):
    def probe(self, path: Path) -> VideoGeometry: ...


def classify_ratio(ratio: float) -> AspectClass:
    """Bucket a width/height ratio into landscape (16:9), portrait (9:16) or other."""
    if math.fabs(ratio - LANDSCAPE_RATIO) < RATIO_TOLERANCE:
        return AspectClass.landscape
    if math.fabs(ratio - PORTRAIT_RATIO) < RATIO_TOLERANCE:
        return AspectClass.portrait
    return AspectClass.other


def classify_aspect_ratio(width: int, height: int) -> AspectClass:
    return classify_ratio(float(width) / float(height))


def parse_stream_geometry(raw: str | Dict[str, Any]) -> VideoGeometry:
    """Extract the first video stream's frame size from ``ffprobe -show_streams`` JSON.

    Args:
        raw: The ffprobe stdout, or the already decoded JSON document.

    Returns:
        The width and height of the first video stream.

    Raises:
        MediaProbeError: The output is not JSON of the expected shape, the
            stream list is empty, or no stream carries usable dimensions.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MediaProbeError(f"ffprobe output is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise MediaProbeError("ffprobe output is not a JSON object")

    streams = raw.get("streams")
    if not isinstance(streams, list):
        raise MediaProbeError("ffprobe output has no stream list")
    if not streams:
        raise MediaProbeError("no video streams found")

    for stream in streams:
        if not isinstance(stream, dict):
            continue
        codec_type = stream.get("codec_type")
        if codec_type not in (None, "video"):
            continue
        width = _positive_int(stream.get("width"))
        height = _positive_int(stream.get("height"))
        if width is None or height is None:
            if codec_type == "video":
                raise MediaProbeError("video stream is missing its frame size")
            continue
        return VideoGeometry(width=width, height=height)

    raise MediaProbeError("no video streams found")


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class FFprobeMediaProbe:
    def __init__(self, *, binary: str = "ffprobe", timeout_s: float = 300.0):
        self.binary = binary
        self.timeout_s = timeout_s

    def command(self, path: Path) -> list[str]:
        return [
            self.binary,
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_streams",
            str(path),
        ]

    def probe(self, path: Path) -> VideoGeometry:
        try:
            result = run_tool(self.command(path), timeout_s=self.timeout_s)
        except ToolError as exc:
            detail = f": {exc.output}" if exc.output else ""
            raise MediaProbeError(f"{exc}{detail}") from exc
        return parse_stream_geometry(result.stdout)


__all__ = [
    "AspectClass",
    "FFprobeMediaProbe",
    "MediaProbe",
    "MediaProbeError",
    "VideoGeometry",
    "classify_aspect_ratio",
    "classify_ratio",
    "parse_stream_geometry",
]
