import argparse
import logging
import sys
from pathlib import Path

from PySide6.QtCore import QCoreApplication

ROOT = Path(__file__).resolve().parent
SRC_DIR = ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from core.config import AppConfig, load_config
from core.errors import PlayerError
from core.models import PlaybackState, RepeatMode, Track
from core.state import AppState, Notify
from core.utils import format_time
from db.database import SqliteKeyValueStore, initialize_database, table_info
from db.settings import SettingsRepository
from library.ingest import iter_audio_paths
from player.player import Player

logger = logging.getLogger("queueplay")


def debug_print_schema(db) -> None:
    for name, col_type in table_info(db, "kv_store"):
        logger.info("kv_store.%s (%s)", name, col_type)


def init_app_state(config: AppConfig) -> AppState:
    db = initialize_database(config.data_dir)
    if config.debug_schema:
        debug_print_schema(db)

    engine = Player(mpv_path=config.mpv_path)
    logger.info("Audio backend: %s", engine.backend_name())

    return AppState(
        engine,
        SettingsRepository(SqliteKeyValueStore(db)),
        blob_dir=config.blob_dir,
    )


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Play audio files or folders through the queue.")
    parser.add_argument("paths", nargs="*", help="audio files or folders to queue")
    parser.add_argument("--playlist", help="play a saved playlist by id instead of paths")
    parser.add_argument("--shuffle", action="store_true", default=None, help="turn shuffle on")
    parser.add_argument("--no-shuffle", dest="shuffle", action="store_false", help="turn shuffle off")
    parser.add_argument("--repeat", choices=[m.value for m in RepeatMode], help="repeat mode")
    parser.add_argument("--volume", type=int, help="volume 0-100")
    return parser.parse_args(argv)


def _log_notification(n: Notify) -> None:
    level = logging.ERROR if n.notify_type == "error" else logging.INFO
    logger.log(level, "%s", n.message)


def _log_track(track: Track | None) -> None:
    if track is not None:
        logger.info("Now playing: %s - %s [%s]", track.artist, track.title, format_time(track.duration_seconds))


def main() -> int:
    args = parse_args(sys.argv[1:])
    config = load_config()
    logging.basicConfig(level=config.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    qt_app = QCoreApplication(sys.argv[:1])
    qt_app.setApplicationName("queueplay")

    try:
        app_state = init_app_state(config)
    except OSError as e:
        logger.error("Failed to initialize: %s", e)
        return 1

    app_state.notification.connect(_log_notification)
    app_state.controller.trackChanged.connect(_log_track)

    if args.shuffle is not None:
        app_state.queue.set_shuffle(args.shuffle)
    if args.repeat:
        app_state.queue.set_repeat_mode(RepeatMode(args.repeat))
    if args.volume is not None:
        app_state.set_volume(args.volume)

    try:
        if args.playlist:
            app_state.play_playlist(args.playlist)
        else:
            files: list[str] = []
            for p in args.paths:
                files += iter_audio_paths([p]) if Path(p).is_dir() else [p]
            if not app_state.import_files(files):
                logger.error("Nothing to play.")
                return 1
            app_state.play_index(0)
    except PlayerError as e:
        logger.error("%s", e)
        return 1

    def _on_state(state: PlaybackState) -> None:
        if state is PlaybackState.IDLE or state is PlaybackState.ERROR:
            qt_app.quit()

    app_state.controller.stateChanged.connect(_on_state)
    code = qt_app.exec()
    app_state.controller.engine.shutdown()
    return code


if __name__ == "__main__":
    raise SystemExit(main())
