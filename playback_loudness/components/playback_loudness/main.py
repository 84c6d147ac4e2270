import argparse
import signal
import sys
from pathlib import Path
from typing import List, Optional

from playback_loudness.components.playback_loudness.app import App
from playback_loudness.components.playback_loudness.constants import CONFIGURATION_PATH
from playback_loudness.components.playback_loudness.initialize_logger import get_logger
from playback_loudness.components.playback_loudness.library.configuration.configuration_loader import \
    ConfigurationLoader
from playback_loudness.components.playback_loudness.library.configuration.model.configuration import \
    PlaybackLoudnessConfigurationModel


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="playback-loudness", description="Loudness analysis and playback profiles.")
    parser.add_argument("--config", type=Path, default=CONFIGURATION_PATH, help="Path to the JSON configuration.")

    commands = parser.add_subparsers(dest="command", required=True)

    analyze = commands.add_parser("analyze", help="Analyze audio files or directories and store their profiles.")
    analyze.add_argument("paths", type=Path, nargs="+")
    analyze.add_argument("--force", action="store_true", help="Re-analyze even when the stored profile is current.")

    show = commands.add_parser("show", help="Print the stored profile for an asset.")
    show.add_argument("asset_id")

    remove = commands.add_parser("remove", help="Remove the stored profile for an asset.")
    remove.add_argument("asset_id")

    export = commands.add_parser("export", help="Export all stored profiles to CSV.")
    export.add_argument("csv_path", type=Path)

    return parser


def _load_configuration(path: Path) -> PlaybackLoudnessConfigurationModel:
    if path == CONFIGURATION_PATH and not path.exists():
        return PlaybackLoudnessConfigurationModel()
    return ConfigurationLoader(path).get_configuration()


def _raise_interrupt(signum, frame) -> None:
    raise KeyboardInterrupt(f"Received signal {signum}")


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    configuration = _load_configuration(args.config)
    logger = get_logger(configuration)

    app: App = App(logger, configuration)

    # Both signals unwind as KeyboardInterrupt so App.run closes the store on the way out.
    signal.signal(signal.SIGINT, signal.default_int_handler)
    signal.signal(signal.SIGTERM, _raise_interrupt)

    try:
        return app.run(args)
    except KeyboardInterrupt:
        logger.warning("Interrupted, profiles stored so far were kept.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
