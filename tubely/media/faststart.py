from __future__ import annotations

from pathlib import Path
from typing import Protocol

from .tools import ToolError, run_tool

FASTSTART_SUFFIX = ".processing"


class FastStartError(Exception):
    """ffmpeg could not remux the staged file."""


class FastStartRewriter(Protocol):
    def rewrite(self, path: Path) -> Path: ...


def faststart_output_path(path: Path) -> Path:
    return path.with_name(path.name + FASTSTART_SUFFIX)


class FFmpegFastStartRewriter:
    """Remux an MP4 so the ``moov`` atom precedes the media data.

    Streams are copied, never re-encoded. The input file is left in place.
    """

    def __init__(self, *, binary: str = "ffmpeg", timeout_s: float = 300.0):
        self.binary = binary
        self.timeout_s = timeout_s

    def command(self, source: Path, target: Path) -> list[str]:
        return [
            self.binary,
            "-nostdin",
            "-y",
            "-i",
            str(source),
            "-c",
            "copy",
            "-movflags",
            "faststart",
            "-f",
            "mp4",
            str(target),
        ]

    def rewrite(self, path: Path) -> Path:
        target = faststart_output_path(path)
        try:
            run_tool(self.command(path, target), timeout_s=self.timeout_s)
        except ToolError as exc:
            raise FastStartError(f"error running ffmpeg: {exc}, output {exc.output}") from exc
        return target


__all__ = ["FASTSTART_SUFFIX", "FastStartError", "FastStartRewriter", "FFmpegFastStartRewriter", "faststart_output_path"]
