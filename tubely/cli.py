from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional
from uuid import UUID

from rich.console import Console

from .core.auth import issue_token
from .core.config import get_settings
from .media.faststart import FastStartError, FFmpegFastStartRewriter
from .media.probe import FFprobeMediaProbe, MediaProbeError
from .media.tools import ToolError, run_tool

console = Console()


def main(argv: Optional[list[str]] = None) -> None:
    """The main entry point for the CLI.

    Args:
        argv: The command-line arguments.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "check", False):
        _run_environment_check()
        return

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tubely media developer CLI")
    parser.add_argument("--check", action="store_true", help="Validate presence of ffmpeg/ffprobe dependencies")

    subparsers = parser.add_subparsers(dest="command")

    probe_parser = subparsers.add_parser("probe", help="Run ffprobe and print the frame size and orientation")
    probe_parser.add_argument("--file", required=True, help="Path to the source media file")
    probe_parser.set_defaults(func=_cmd_probe)

    faststart_parser = subparsers.add_parser("faststart", help="Write a fast-start copy next to the source file")
    faststart_parser.add_argument("--file", required=True, help="Path to the source MP4 file")
    faststart_parser.set_defaults(func=_cmd_faststart)

    token_parser = subparsers.add_parser("token", help="Mint a development bearer token")
    token_parser.add_argument("--user-id", required=True, type=UUID, help="User id placed in the sub claim")
    token_parser.set_defaults(func=_cmd_token)
    return parser


def _cmd_probe(args: argparse.Namespace) -> None:
    settings = get_settings()
    media_path = _existing_file(args.file)
    probe = FFprobeMediaProbe(binary=settings.ffprobe_binary, timeout_s=settings.tool_timeout_seconds)
    try:
        geometry = probe.probe(media_path)
    except MediaProbeError as exc:
        console.print(f"[red]ffprobe failed:[/] {exc}")
        sys.exit(3)
    console.print_json(
        data={
            "file": str(media_path),
            "width": geometry.width,
            "height": geometry.height,
            "ratio": round(geometry.ratio, 4),
            "orientation": geometry.orientation.value,
        }
    )


def _cmd_faststart(args: argparse.Namespace) -> None:
    settings = get_settings()
    media_path = _existing_file(args.file)
    rewriter = FFmpegFastStartRewriter(binary=settings.ffmpeg_binary, timeout_s=settings.tool_timeout_seconds)
    try:
        output = rewriter.rewrite(media_path)
    except FastStartError as exc:
        console.print(f"[red]{exc}[/]")
        sys.exit(3)
    console.print(f"[green]Fast-start copy written to {output}[/]")


def _cmd_token(args: argparse.Namespace) -> None:
    settings = get_settings()
    if settings.environment_lower not in {"development", "dev", "test"}:
        console.print("[red]Development tokens are disabled outside development.[/]")
        sys.exit(2)
    console.print(issue_token(args.user_id, settings), soft_wrap=True)


def _existing_file(raw: str) -> Path:
    media_path = Path(raw).expanduser().resolve()
    if not media_path.is_file():
        console.print(f"[red]File not found: {media_path}[/]")
        sys.exit(2)
    return media_path


def _run_environment_check() -> None:
    """Check for the presence of required external dependencies."""
    settings = get_settings()
    checks = {
        "ffmpeg": [settings.ffmpeg_binary, "-version"],
        "ffprobe": [settings.ffprobe_binary, "-version"],
    }
    results = {}
    for label, cmd in checks.items():
        try:
            run_tool(cmd, timeout_s=30)
            results[label] = True
        except ToolError:
            results[label] = False

    console.rule("[bold]Environment Check")
    for label, ok in results.items():
        console.print(f"[bold]{label}[/]: {'✅' if ok else '❌'}")

    if not all(results.values()):
        console.print("[red]Missing dependencies detected. Install ffmpeg before serving uploads.[/]")
        sys.exit(1)
    console.print("[green]Environment looks good![/]")


if __name__ == "__main__":
    main()
