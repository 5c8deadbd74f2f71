# -*- coding: utf-8 -*-
"""
Command-line entry point.
Run:
  python -m markerkit.app preview --in clip.mp4 --at 12.5 --end 30 --audio
  python -m markerkit.app webp --in clip.mp4 --at 12.5
  python -m markerkit.app screenshot --in clip.mp4 --at 12.5 --width 320
  python -m markerkit.app phash --in clip.mp4
  python -m markerkit.app cleanup
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from markerkit.core import phash
from markerkit.core.config import TranscodeConfig
from markerkit.core.context import background, with_timeout
from markerkit.core.errors import GenerationError
from markerkit.core.ffmpeg import FFmpeg
from markerkit.core.gatekeeper import cleanup_temp_files
from markerkit.core.generator import Generator, generate_all
from markerkit.core.paths import MarkerPaths
from markerkit.core.probe import probe_media
from markerkit.core.utils import apply_cli_overrides, load_config_file, prepare_config

LOG = logging.getLogger("markerkit.app")


def _apply_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Map CLI flags to config override keys."""
    overrides: Dict[str, Any] = {}
    if args.out:
        overrides["generated.folder"] = str(Path(args.out))
    if args.overwrite:
        overrides["generated.overwrite"] = True
    if args.hwaccel is not None:
        hw = args.hwaccel.strip().lower()
        overrides["ffmpeg.hardware_acceleration"] = hw in {"on", "1", "true", "yes"}
    if args.ffmpeg:
        overrides["ffmpeg.bin"] = args.ffmpeg
    return overrides


def _load(args: argparse.Namespace) -> Dict[str, Any]:
    cfg = load_config_file(Path(args.config) if args.config else None)
    return prepare_config(apply_cli_overrides(cfg, _apply_overrides(args)))


def _build_generator(cfg: Dict[str, Any]) -> Generator:
    ff = cfg["ffmpeg"]
    return Generator(
        encoder=FFmpeg(path=ff["bin"], ffprobe_path=ff["probe"]),
        paths=MarkerPaths(cfg["generated"]["folder"]),
        config=TranscodeConfig.from_config(cfg),
        overwrite=cfg["generated"]["overwrite"],
    )


def _run_cli(args: argparse.Namespace) -> int:
    """CLI execution path."""
    cfg = _load(args)
    if not args.log_level:
        logging.getLogger().setLevel(cfg["logging"]["level"])

    if args.command == "cleanup":
        removed = cleanup_temp_files(cfg["generated"]["folder"])
        LOG.info("removed %d temp file(s)", removed)
        return 0

    ctx = with_timeout(None, args.timeout) if args.timeout else background()
    try:
        media = probe_media(args.input, cfg["ffmpeg"]["probe"])
        if args.command == "phash":
            grid = cfg["phash"]
            value = phash.generate(
                FFmpeg(path=cfg["ffmpeg"]["bin"], ffprobe_path=cfg["ffmpeg"]["probe"]),
                media,
                config=TranscodeConfig.from_config(cfg),
                ctx=ctx,
                columns=grid["columns"],
                rows=grid["rows"],
                width=grid["screenshot_width"],
            )
            print(f"{value:016x}")
            return 0

        gen = _build_generator(cfg)
        if args.command == "preview":
            state = gen.preview_clip(ctx, media.path, media.hash, args.at, args.end, args.audio)
        elif args.command == "webp":
            state = gen.animated_thumbnail(ctx, media.path, media.hash, args.at)
        elif args.command == "screenshot":
            state = gen.screenshot(ctx, media.path, media.hash, args.at, args.width)
        else:
            states = generate_all(
                gen, ctx, media.path, media.hash, args.at, args.end, args.audio, args.widths or ()
            )
            LOG.info("results: %s", ", ".join(s.value for s in states))
            return 0
        LOG.info("%s: %s", args.command, state.value)
        return 0
    except (GenerationError, OSError) as exc:  # pragma: no cover
        LOG.exception("%s failed: %s", args.command, exc)
        return 1
    finally:
        ctx.cancel()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Scene-marker derivative generator")
    parser.add_argument("--config", dest="config", default="", help="Path to config.yaml")
    parser.add_argument("--out", dest="out", help="Generated folder override")
    parser.add_argument("--ffmpeg", dest="ffmpeg", help="ffmpeg binary override")
    parser.add_argument("--hwaccel", dest="hwaccel", help="Hardware acceleration: on/off")
    parser.add_argument("--overwrite", action="store_true", help="Regenerate existing outputs")
    parser.add_argument("--timeout", type=float, default=0.0, help="Cancel after N seconds")
    parser.add_argument("--log-level", dest="log_level", default=None, help="Logging level")

    sub = parser.add_subparsers(dest="command", required=True)
    for name in ("preview", "webp", "screenshot", "all", "phash"):
        p = sub.add_parser(name)
        p.add_argument("--in", dest="input", required=True, help="Input video path")
        if name != "phash":
            p.add_argument("--at", dest="at", type=float, required=True, help="Marker offset (seconds)")
        if name in ("preview", "all"):
            p.add_argument("--end", dest="end", type=float, default=None, help="Marker end (seconds)")
            p.add_argument("--audio", action="store_true", help="Include an audio track")
        if name == "screenshot":
            p.add_argument("--width", dest="width", type=int, required=True, help="Screenshot width")
        if name == "all":
            p.add_argument("--widths", dest="widths", type=int, nargs="*", help="Screenshot widths")
    sub.add_parser("cleanup", help="Remove stray temp files under the generated folder")

    args = parser.parse_args(argv)

    level = args.log_level or "INFO"
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    return _run_cli(args)


if __name__ == "__main__":
    sys.exit(main())
