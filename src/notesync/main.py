#!/usr/bin/env python
"""Command line entry point for the NoteSync client."""
import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List

from notesync import __version__
from notesync.config import config
from notesync.exceptions import NoteSyncError
from notesync.models.schema import NoteKind
from notesync.observability import configure_logging, metrics
from notesync.session import NoteSyncSession
from notesync.storage.hierarchy import build_tree

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="NoteSync client")
    parser.add_argument("--version", action="version", version=f"notesync {__version__}")
    parser.add_argument(
        "--server-url",
        help="Base URL of the note server",
        type=str,
        default=os.environ.get("NOTESYNC_SERVER_URL"),
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("NOTESYNC_LOG_LEVEL", "WARNING"),
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("tree", help="Print the folder/note hierarchy")
    commands.add_parser("invites", help="List pending collaboration invites")
    commands.add_parser("watch", help="Follow the push channel and print each update")

    export_cmd = commands.add_parser("export", help="Write the server's export archive")
    export_cmd.add_argument("output", type=Path, help="Destination file")

    import_cmd = commands.add_parser("import", help="Upload an export archive")
    import_cmd.add_argument("input", type=Path, help="Archive produced by 'export'")

    public_cmd = commands.add_parser("public", help="Read a public note")
    public_cmd.add_argument("note_id", help="ID of the public note")
    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.server_url:
        config.server_url = args.server_url


def format_tree(tree: Dict[str, Any], indent: int = 0) -> List[str]:
    """Render the output of ``build_tree`` as indented lines."""
    lines = []
    pad = "  " * indent
    for entry in tree["folders"]:
        folder = entry["folder"]
        lines.append(f"{pad}{folder.name}/  [{folder.id}]")
        lines.extend(format_tree(entry, indent + 1))
    for note in tree["notes"]:
        marker = "md" if note.kind is NoteKind.MARKDOWN else "draw"
        flags = " public" if note.is_public else ""
        lines.append(f"{pad}{note.name}  ({marker}{flags}) [{note.id}]")
    return lines


async def run_command(args, session: NoteSyncSession) -> int:
    if args.command == "public":
        note = await session.public_notes.fetch(args.note_id)
        print(f"# {note.name}")
        if note.kind is NoteKind.MARKDOWN:
            print(note.text())
        else:
            print(f"<drawing, {len(note.content)} bytes>")
        return 0

    if args.command == "invites":
        invites = await session.engine.get_invites()
        if not invites:
            print("No pending invites")
        for invite in invites:
            print(f"{invite.note_name or invite.note_id}  from {invite.inviter_id}")
        return 0

    if args.command == "export":
        blob = await session.engine.export_all()
        args.output.write_bytes(blob)
        print(f"Wrote {len(blob)} bytes to {args.output}")
        return 0

    if args.command == "import":
        await session.engine.import_all(args.input.read_bytes())
        print(f"Imported {args.input}; {len(session.store)} items in tree")
        return 0

    if args.command == "watch":
        last = {"generation": 0}

        def show(store) -> None:
            if store.generation == last["generation"]:
                return
            last["generation"] = store.generation
            print(f"Tree updated: {len(store.folders)} folders, {len(store.notes)} notes")

        session.store.subscribe(show)
        await session.start(follow_push=True)
        await session.wait()
        return 0

    # tree
    await session.engine.refresh_structure()
    lines = format_tree(build_tree(session.store.folder_map, session.store.note_map))
    print("\n".join(lines) if lines else "(empty)")
    return 0


async def run(args) -> int:
    async with NoteSyncSession(config) as session:
        return await run_command(args, session)


def main(argv=None):
    """Run the NoteSync command line client."""
    args = parse_args(argv)
    update_config(args)

    # Configure logging (persistent file logging with rotation)
    log_level = getattr(logging, args.log_level.upper(), logging.WARNING)
    try:
        log_file = configure_logging(config.log_dir, level=log_level, console=True)
    except Exception as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=log_level)
        logger.warning(f"Failed to configure file logging: {e}")
        log_file = None

    if log_file:
        logger.info(f"Persistent logging enabled: {log_file}")

    try:
        code = asyncio.run(run(args))
    except KeyboardInterrupt:
        code = 130
    except NoteSyncError as e:
        logger.debug(f"Command failed: {e.to_dict()}")
        print(f"Error: {e.message}", file=sys.stderr)
        code = 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1

    logger.debug(f"Metrics summary: {metrics.get_summary()}")
    sys.exit(code)


if __name__ == "__main__":
    main()
