"""Command-line interface: speed-read text files and manage the library.

WHY: The engine and the session host need at least one real front end.
A terminal player is the smallest one that exercises everything: import,
storage, position restore, settings, the timer loop and autosave. The
library and settings commands give the user the same reach into the
store that the reading app's library and settings screens do.

HOW: argparse with one subcommand per screen:
  read      import a .txt file (or reopen a stored document by id) and
            play it on a ThreadingScheduler, one terminal line per word
  list      stored documents with word count and % complete
  delete    remove a document and its saved progress
  settings  show or change the stored reader settings
  clear     remove every document, all progress and the settings
Every subcommand accepts --data-dir and --verbose.

RULES:
- read: rate/pause flags override stored settings for this run only;
  --restart ignores saved progress; --start N jumps to word N
- read: re-importing the same path reuses its document id, so saved
  progress survives
- Word display and listings go to stdout; status messages go to stderr
- Ctrl+C while reading pauses, saves progress and exits with 130
- Import/storage/validation errors print "Error: ..." and exit with 1
- clear asks for confirmation unless --yes is given
"""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from rsvp_reader.config import DEFAULT_DATA_DIR, MAX_WPM, MIN_WPM
from rsvp_reader.core.scheduler import ThreadingScheduler
from rsvp_reader.core.state import StateSnapshot
from rsvp_reader.core.timing import progress_percentage
from rsvp_reader.errors import RSVPReaderError
from rsvp_reader.importer import SUPPORTED_FORMATS, create_document
from rsvp_reader.session import ReaderSession
from rsvp_reader.storage.models import Document, ReaderSettings
from rsvp_reader.storage.store import ReaderStore

# Width reserved for the word so the progress column doesn't jump around.
_WORD_COLUMN = 24


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


def _error(msg: str) -> int:
    print("Error: {}".format(msg), file=sys.stderr)
    return 1


def render_line(state: StateSnapshot) -> str:
    """One terminal line for a snapshot: centered word, progress, time left."""
    word = state.current_word
    if state.total_words and state.current_index >= state.total_words:
        word = "(done)"
    return "{}  {:>3d}%  {} left".format(
        word.center(_WORD_COLUMN), state.percentage, state.time_remaining
    )


def _draw(state: StateSnapshot) -> None:
    sys.stdout.write("\r\x1b[K" + render_line(state))
    sys.stdout.flush()


def _import_document(path: Path, store: ReaderStore) -> Document:
    """Import ``path`` and store it, reusing the id of a previous import.

    RULES:
    - Same resolved path → same document id (keeps saved progress)
    - Content is refreshed from disk on every import
    """
    document = create_document(path)
    for existing in store.get_documents():
        if existing.uri == document.uri:
            document = document.model_copy(
                update={"id": existing.id, "created_at": existing.created_at}
            )
            break
    store.save_document(document)
    return document


def _resolve_document(target: str, store: ReaderStore) -> Optional[Document]:
    """A file path is imported; anything else is looked up as a document id."""
    path = Path(target).expanduser()
    if path.is_file():
        return _import_document(path, store)
    return store.get_document(target)


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_read(args: argparse.Namespace, store: ReaderStore) -> int:
    try:
        document = _resolve_document(args.target, store)
    except RSVPReaderError as e:
        return _error(str(e))

    if document is None:
        return _error("File not found: {}".format(Path(args.target).expanduser()))

    if not document.word_count or not document.content:
        return _error("No words found in {}".format(document.name))

    finished = threading.Event()
    session = ReaderSession(
        document_id=document.id,
        content=document.content,
        store=store,
        scheduler=ThreadingScheduler(),
        on_state=_draw,
        on_complete=finished.set,
        restore_progress=not args.restart,
    )

    session.open()
    overrides = {
        key: value
        for key, value in (
            ("wpm", args.wpm),
            ("natural_reading_enabled", args.natural_reading),
            ("period_delay", args.period_delay),
            ("comma_delay", args.comma_delay),
        )
        if value is not None
    }
    if overrides:
        session.engine.apply_settings(overrides)
    if args.start is not None:
        session.engine.jump_to(args.start)
    state = session.state

    _status("Reading {} ({} words, {} wpm, starting at word {})".format(
        document.name, state.total_words, session.engine.wpm, state.current_index + 1,
    ))

    try:
        session.play()
        while not finished.wait(0.2):
            pass
    except KeyboardInterrupt:
        session.close()
        sys.stdout.write("\n")
        state = session.state
        _status("Paused at word {} of {}. Progress saved.".format(
            state.current_index + 1, state.total_words,
        ))
        return 130

    session.close()
    sys.stdout.write("\n")
    _status("Done! Read {} words.".format(session.state.total_words))
    return 0


def _cmd_list(args: argparse.Namespace, store: ReaderStore) -> int:
    documents = store.get_documents()
    if not documents:
        _status("No documents yet. Import one with: rsvp-reader read FILE")
        return 0

    all_progress = store.get_all_progress()
    for document in documents:
        progress = all_progress.get(document.id)
        percent = (
            progress_percentage(progress.current_word_index, progress.total_words)
            if progress is not None
            else 0
        )
        print("{}  {:>3d}%  {:>8} words  {}".format(
            document.id, percent, "{:,}".format(document.word_count or 0), document.name,
        ))
    return 0


def _cmd_delete(args: argparse.Namespace, store: ReaderStore) -> int:
    document = store.get_document(args.document_id)
    try:
        deleted = store.delete_document(args.document_id)
    except RSVPReaderError as e:
        return _error(str(e))
    if not deleted:
        return _error("No document with id {}".format(args.document_id))
    _status("Deleted {}".format(document.name if document else args.document_id))
    return 0


def _cmd_settings(args: argparse.Namespace, store: ReaderStore) -> int:
    current = ReaderSettings() if args.reset else store.get_settings()
    changes: Dict[str, Any] = {
        key: value
        for key, value in (
            ("wpm", args.wpm),
            ("font_size", args.font_size),
            ("highlight_enabled", args.highlight),
            ("focus_point_enabled", args.focus_point),
            ("natural_reading_enabled", args.natural_reading),
            ("period_delay", args.period_delay),
            ("comma_delay", args.comma_delay),
        )
        if value is not None
    }

    if changes or args.reset:
        try:
            updated = ReaderSettings.model_validate({**current.model_dump(), **changes})
        except ValidationError as e:
            return _error("Invalid settings: {}".format(e.errors()[0]["msg"]))
        try:
            store.save_settings(updated)
        except RSVPReaderError as e:
            return _error(str(e))
        current = updated
        _status("Settings saved.")

    for key, value in current.model_dump().items():
        print("{}: {}".format(key, value))
    return 0


def _cmd_clear(args: argparse.Namespace, store: ReaderStore) -> int:
    if not args.yes:
        try:
            answer = input("Delete all documents, progress and settings in {}? [y/N] ".format(
                store.data_dir
            ))
        except EOFError:
            answer = ""
        if answer.strip().lower() not in ("y", "yes"):
            _status("Cancelled.")
            return 0

    try:
        store.clear_all()
    except RSVPReaderError as e:
        return _error(str(e))
    _status("All data cleared.")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _non_negative_float(value: str) -> float:
    number = float(value)
    if number < 0:
        raise argparse.ArgumentTypeError("must be >= 0, got {}".format(value))
    return number


def _add_pause_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--natural-reading",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Use tunable punctuation pauses instead of the fixed ones.",
    )
    parser.add_argument(
        "--period-delay",
        type=_non_negative_float,
        default=None,
        help="Extra delay multiplier after . ! ? when natural reading is on.",
    )
    parser.add_argument(
        "--comma-delay",
        type=_non_negative_float,
        default=None,
        help="Extra delay multiplier after , ; : when natural reading is on.",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    RULES:
    - Subcommands: read, list, delete, settings, clear (one is required)
    - Every subcommand takes --data-dir and --verbose
    - read: target (file or document id), --wpm, pause options,
      --start N or --restart
    - settings: every stored field as an optional flag, plus --reset
    """
    parser = argparse.ArgumentParser(
        prog="rsvp_reader",
        description="Speed-read text files one word at a time (RSVP).",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--data-dir",
        default=str(DEFAULT_DATA_DIR),
        help="Where settings, documents and progress are stored (default: %(default)s).",
    )
    common.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug output to stderr.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # read
    read_parser = subparsers.add_parser(
        "read", parents=[common], help="Read a document in the terminal"
    )
    read_parser.add_argument(
        "target",
        help="Path to a document ({}) or the id of a stored document.".format(
            ", ".join(sorted(SUPPORTED_FORMATS))
        ),
    )
    read_parser.add_argument(
        "--wpm",
        type=int,
        default=None,
        help="Words per minute, {}–{} (default: stored setting).".format(MIN_WPM, MAX_WPM),
    )
    _add_pause_options(read_parser)
    start = read_parser.add_mutually_exclusive_group()
    start.add_argument(
        "--start",
        type=int,
        default=None,
        help="Start at this word index (0-based), ignoring saved progress.",
    )
    start.add_argument(
        "--restart",
        action="store_true",
        help="Start from the beginning, ignoring saved progress.",
    )
    read_parser.set_defaults(func=_cmd_read)

    # list
    list_parser = subparsers.add_parser(
        "list", parents=[common], help="List stored documents and progress"
    )
    list_parser.set_defaults(func=_cmd_list)

    # delete
    delete_parser = subparsers.add_parser(
        "delete", parents=[common], help="Delete a stored document and its progress"
    )
    delete_parser.add_argument("document_id", help="Id shown by the list command.")
    delete_parser.set_defaults(func=_cmd_delete)

    # settings
    settings_parser = subparsers.add_parser(
        "settings", parents=[common], help="Show or change stored reader settings"
    )
    settings_parser.add_argument(
        "--wpm",
        type=int,
        default=None,
        help="Default words per minute (clamped to {}–{}).".format(MIN_WPM, MAX_WPM),
    )
    settings_parser.add_argument("--font-size", type=int, default=None, help="Display font size.")
    settings_parser.add_argument(
        "--highlight",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Feedback on playback events in hosts that support it.",
    )
    settings_parser.add_argument(
        "--focus-point",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Highlight the optimal recognition point of each word.",
    )
    _add_pause_options(settings_parser)
    settings_parser.add_argument(
        "--reset",
        action="store_true",
        help="Start from the default settings before applying other flags.",
    )
    settings_parser.set_defaults(func=_cmd_settings)

    # clear
    clear_parser = subparsers.add_parser(
        "clear", parents=[common], help="Delete all documents, progress and settings"
    )
    clear_parser.add_argument("--yes", action="store_true", help="Don't ask for confirmation.")
    clear_parser.set_defaults(func=_cmd_clear)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m rsvp_reader`` and the ``rsvp-reader`` script.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    sys.exit(args.func(args, ReaderStore(args.data_dir)))


if __name__ == "__main__":
    main()
