"""Terminal preview: ``python -m asciimotion <generator> [options]``."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .core.config import EngineConfig, set_config
from .core.colors import get_available_palettes
from .core.errors import GeneratorError
from .core.scheduler import PreviewScheduler
from .generators.engine import GENERATOR_DEFINITIONS, PreviewRequest, generate_preview
from .generators.settings import settings_from_dict
from .render.converter import ColorMapping, ConversionSettings

logger = logging.getLogger("asciimotion")

CLEAR = "\033[2J"
HOME = "\033[H"


def _parse_value(text: str):
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def build_request(args) -> PreviewRequest:
    overrides = {}
    for item in args.set or []:
        key, _, value = item.partition("=")
        overrides[key.strip()] = _parse_value(value.strip())
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.frames is not None:
        overrides["frame_count"] = args.frames
    settings = settings_from_dict(args.generator, overrides)

    color = ColorMapping(enabled=bool(args.palette), palette=args.palette, mode=args.color_mode)
    conversion = ConversionSettings(
        width=args.width,
        height=args.height,
        character_set=tuple(args.charset) if args.charset else None,
        invert_density=args.invert,
        dither_mode=args.dither,
        foreground=color,
    )
    return PreviewRequest(settings, conversion)


def render_text(frame, plain: bool) -> str:
    return frame.render_plain() if plain else frame.render()


async def play(request: PreviewRequest, config: EngineConfig, plain: bool, loops: int) -> int:
    loop = asyncio.get_running_loop()
    done = loop.create_future()
    scheduler = PreviewScheduler(loop, config=config)
    wraps = {"count": 0}

    def show(index, frame):
        if index == 0 and scheduler.state == "playing":
            wraps["count"] += 1
            if loops and wraps["count"] >= loops and not done.done():
                done.set_result(0)
                return
        sys.stdout.write(HOME + render_text(frame, plain))
        sys.stdout.flush()

    def state_changed(state):
        if state == "idle" and scheduler.error is not None and not done.done():
            done.set_result(1)

    scheduler.on_frame(show)
    scheduler.on_state_change(state_changed)
    sys.stdout.write(CLEAR)
    scheduler.update(request)
    try:
        return await done
    finally:
        scheduler.stop()


def main(argv=None) -> int:
    ids = [d.id for d in GENERATOR_DEFINITIONS]
    parser = argparse.ArgumentParser(description="Procedural ASCII animation preview")
    parser.add_argument("generator", choices=ids, help="Generator to run")
    parser.add_argument("-W", "--width", type=int, default=80, help="Grid width (default: 80)")
    parser.add_argument("-H", "--height", type=int, default=24, help="Grid height (default: 24)")
    parser.add_argument("-s", "--seed", type=int, default=None, help="Random seed")
    parser.add_argument("-n", "--frames", type=int, default=None, help="Frame count override")
    parser.add_argument("--set", action="append", metavar="KEY=VALUE",
                        help="Generator setting (snake_case or camelCase; JSON values)")
    parser.add_argument("--charset", default=None,
                        help="Character ramp, sparse to dense (default: render.default_character_set)")
    parser.add_argument("--invert", action="store_true", help="Reverse the character ramp")
    parser.add_argument("--dither", default="none", help="Character dithering mode")
    parser.add_argument("--palette", choices=get_available_palettes(), help="Foreground palette")
    parser.add_argument("--color-mode", default="closest", help="Palette mapping mode")
    parser.add_argument("--frame", type=int, default=0, help="Frame to print when not playing")
    parser.add_argument("--play", action="store_true", help="Animate in the terminal")
    parser.add_argument("--loops", type=int, default=0, help="Stop after N loops (0 = forever)")
    parser.add_argument("--plain", action="store_true", help="No ANSI colors")
    parser.add_argument("--config", type=Path, help="Engine config JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        stream=sys.stderr,
        format="%(name)s %(levelname)s: %(message)s",
    )

    config = EngineConfig.load(args.config) if args.config else EngineConfig()
    set_config(config)

    try:
        request = build_request(args)
    except GeneratorError as e:
        logger.error("Invalid options: %s", e)
        return 2

    if args.play:
        try:
            return asyncio.run(play(request, config, args.plain, args.loops))
        except KeyboardInterrupt:
            return 0

    result = generate_preview(request, config)
    if not result.success:
        logger.error("Generation failed (%s): %s", result.error_kind, result.error_message)
        return 1
    frame = result.converted[args.frame % len(result.converted)]
    print(render_text(frame, args.plain))
    return 0


if __name__ == "__main__":
    sys.exit(main())
