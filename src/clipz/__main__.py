import argparse
import logging
import sys

from clipz import __version__
from clipz.config import LOG_PATH, load_config
from clipz.errors import UnsupportedPlatform
from clipz.utils import ensure_dirs

logger = logging.getLogger("clipz")


def configure_logging(verbose: bool = False) -> None:
    """Log to the data directory and to stderr; stdout belongs to the front-end."""
    ensure_dirs()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(LOG_PATH),
            stream_handler,
        ],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipz",
        description="Clipz - Clipboard history manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Console commands:
  get           Display clipboard entries
  get <n>       Copy entry n to clipboard
  rm <n>        Remove entry n
  clean         Clear all entries
  exit          Quit application

Environment:
  CLIPZ_MAX_ENTRIES    Override the number of entries kept
  CLIPZ_HISTORY_PATH   Override the history file location

Examples:
  clipz                     # interactive console
  clipz --json-api --low-power
""",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "-c", "--cli",
        dest="mode",
        action="store_const",
        const="cli",
        help="Run the interactive console (default)",
    )
    mode.add_argument(
        "-j", "--json-api",
        dest="mode",
        action="store_const",
        const="json-api",
        help="Speak the JSON line protocol on stdin/stdout for GUI front-ends",
    )

    preset = parser.add_mutually_exclusive_group()
    for name, help_text in (
        ("balanced", "Default polling and save cadence"),
        ("low-power", "Slower polling, fewer saves"),
        ("ultra-low-power", "Slowest polling, keeps 5 entries"),
        ("responsive", "Faster polling, frequent saves"),
    ):
        preset.add_argument(f"--{name}", dest="preset", action="store_const", const=name, help=help_text)

    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.set_defaults(mode="cli", preset="balanced")
    return parser


def main(argv: list[str] | None = None):
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    config = load_config(args.preset)
    logger.info("Starting in %s mode with %s preset (max %d entries)", args.mode, args.preset, config.max_entries)

    from clipz.app import ClipzApp

    try:
        app = ClipzApp(config)
    except UnsupportedPlatform as exc:
        logger.error("%s", exc)
        print(f"clipz: {exc}", file=sys.stderr)
        sys.exit(2)

    try:
        if args.mode == "json-api":
            saved = app.run_gateway()
        else:
            saved = app.run_console()
    except KeyboardInterrupt:
        # shutdown already ran on the way out
        saved = not app.saver.dirty
    sys.exit(0 if saved else 1)


if __name__ == "__main__":
    main()
