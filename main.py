#!/usr/bin/env python3
"""
CHK Fragment Recovery — Entry Point.

Usage:
    python main.py --source <folder with .CHK files> [--dest <folder>]
    python main.py --source D:\\FOUND.000 --dest D:\\Recovered --log --recursive
"""

APP_NAME = "chkrescue"
APP_VERSION = "1.0.2"

import os
import sys
import time
import logging
import argparse

from chkrescue.signatures import SignatureError, build_default_registry
from chkrescue.output import free_path
from chkrescue.sources import find_fragments, iter_sources
from chkrescue.manager import (
    RecoveryManager, RecoveryOptions, Outcome, default_report_path, fmt_size,
    RECOVERED, SKIPPED, WRITE_ERROR, READ_ERROR, NOT_RECOVERED,
)

LOG_FILE = f"{APP_NAME}.log"

outcome_log = logging.getLogger("chkrescue.outcomes")


def _setup_outcome_log(path: str):
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(message)s", datefmt="%Y/%m/%d %H:%M:%S"))
    outcome_log.addHandler(handler)
    outcome_log.setLevel(logging.INFO)
    outcome_log.propagate = False
    return handler


def _prompt_dest() -> str:
    try:
        return input("Enter the path to the folder where recovered files will be saved: ").strip()
    except (EOFError, KeyboardInterrupt):
        return ""


def cli_mode(args) -> int:
    print(f"{APP_NAME} v{APP_VERSION}")
    print()

    try:
        registry = build_default_registry()
    except SignatureError as e:
        print(f"Fatal: signature catalogue is invalid: {e}")
        return 2

    if not os.path.isdir(args.source):
        print(f"Error: Source folder '{args.source}' does not exist.")
        return 1

    dest = args.dest or _prompt_dest()
    if not dest:
        print("Error: A destination folder is required.")
        return 1
    try:
        os.makedirs(dest, exist_ok=True)
    except OSError as e:
        print(f"Error: Could not create destination folder '{dest}': {e}")
        return 1

    print(f"Source:      {args.source}")
    print(f"Destination: {dest}")

    handler = None
    if args.log:
        handler = _setup_outcome_log(LOG_FILE)
        print(f"Log will be saved to {LOG_FILE}")

    if args.recursive:
        print("Recursive search enabled...")
    try:
        paths = find_fragments(args.source, recursive=args.recursive,
                               extensions=args.ext or (".chk",))
    except OSError as e:
        print(f"Error finding fragment files: {e}")
        return 1
    if not paths:
        print("No .CHK files found in the specified folder.")
        return 0
    print(f"Found {len(paths)} .CHK files. Starting scan...")

    manager = RecoveryManager(registry, RecoveryOptions(
        dest_dir=dest,
        skip_existing=args.skip,
        validate_images=not args.no_validate,
    ))

    def on_progress(index: int, total: int, name: str):
        sys.stdout.write(f"\rScanning [{index}/{total}]: {name}...")
        sys.stdout.flush()

    def on_outcome(o: Outcome, index: int, total: int):
        target = os.path.basename(o.path)
        if o.kind == RECOVERED:
            print(f"\rFound! [{index}/{total}]: {o.display_name} -> {target}")
        elif o.kind == SKIPPED:
            print(f"\rSkipped! [{index}/{total}]: {o.display_name} -> {target} (already exists)")
        elif o.kind == WRITE_ERROR:
            print(f"\nError saving recovered file from {o.display_name}: {o.error}")
        elif o.kind == READ_ERROR:
            print(f"\nError reading file {o.display_name}: {o.error}")
        if handler is not None:
            outcome_log.info(o.log_line())

    manager.set_callbacks(on_progress=on_progress, on_outcome=on_outcome)

    start = time.time()
    try:
        session = manager.run(iter_sources(paths))
    except KeyboardInterrupt:
        manager.cancel()
        print("\nAborted.")
        return 130
    finally:
        if handler is not None:
            outcome_log.removeHandler(handler)
            handler.close()
    elapsed = time.time() - start

    print("\n\nProcess complete.")
    _print_summary(session, elapsed)

    # Never replace an existing file, recovered or not
    report = free_path(args.report) if args.report else default_report_path(dest)
    try:
        manager.export_report_json(report)
        print(f"  Report: {report}")
    except OSError as e:
        print(f"  Could not write report {report}: {e}")
    print()
    return 0


def _print_summary(session, elapsed: float):
    print("─" * 60)
    print(f"  Done in {elapsed:.1f}s — {session.processed_inputs} of "
          f"{session.total_inputs} fragment(s), "
          f"{len(session.recovered)} file(s) recovered")
    print("─" * 60)

    by_ext = session.files_by_extension
    if by_ext:
        print(f"  {'Ext':9s} {'Count':>6s}  {'Size':>10s}")
        print(f"  {'-'*9} {'-'*6}  {'-'*10}")
        for ext in sorted(by_ext):
            files = by_ext[ext]
            print(f"    .{ext:7s} {len(files):4d}    "
                  f"{fmt_size(sum(f.size for f in files)):>10s}")

    for label, kind in (("Skipped", SKIPPED), ("Not recovered", NOT_RECOVERED),
                        ("Read errors", READ_ERROR), ("Write errors", WRITE_ERROR)):
        count = len(session.by_kind(kind))
        if count:
            print(f"  {label}: {count}")
    if session.was_cancelled:
        print("  (Cancelled before all fragments were processed)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Recover files from orphaned .CHK fragments.")
    parser.add_argument("-s", "--source", required=True,
                        help="The folder where the .CHK files are located")
    parser.add_argument("-d", "--dest", default="",
                        help="The folder where recovered files will be saved "
                             "(prompted for if omitted)")
    parser.add_argument("--log", action="store_true",
                        help=f"Append per-file results to {LOG_FILE}")
    parser.add_argument("--skip", action="store_true",
                        help="Skip recovery if a file with the same name "
                             "already exists in the destination")
    parser.add_argument("-r", "--recursive", action="store_true",
                        help="Search for .CHK files in subdirectories as well")
    parser.add_argument("--ext", action="append", default=None,
                        help="Fragment extension to look for (repeatable, default .chk)")
    parser.add_argument("--report", default="",
                        help="Path of the JSON recovery report "
                             "(default <dest>/recovery_log.json; an existing file gets a -N suffix)")
    parser.add_argument("--no-validate", action="store_true",
                        help="Don't decode-check recovered images")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Debug logging to stderr")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    sys.exit(cli_mode(args))


if __name__ == "__main__":
    main()
