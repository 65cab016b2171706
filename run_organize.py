#!/usr/bin/env python3
"""
CLI: group similar photos in a folder, score them, and keep the best of each group.
Usage:
  python run_organize.py --folder path/to/photos [--review auto|web] [--move duplicates/]
"""

import argparse
import os
import sys

# Ensure project root is on path so config and photo_organizer resolve when run from any cwd
_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
if _SCRIPT_DIR not in sys.path:
    sys.path.insert(0, _SCRIPT_DIR)

from tqdm import tqdm

import config as cfg
from photo_organizer.errors import OrganizerError
from photo_organizer.features import ClipEmbedder
from photo_organizer.log import init_logging
from photo_organizer.options import GroupOptions, ScoreOptions, load_options
from photo_organizer.pipeline import collect_image_paths, run_pipeline, web_reviewer
from photo_organizer.scorer import CompositeScorer


def parse_extensions(value: str) -> set[str]:
    exts = set()
    for part in value.split(","):
        part = part.strip().lower()
        if part:
            exts.add(part if part.startswith(".") else f".{part}")
    return exts


def make_progress(desc: str):
    pbar = [None]

    def progress(processed: int, total: int):
        if pbar[0] is None:
            pbar[0] = tqdm(total=total, desc=desc, unit="img")
        pbar[0].n = min(processed, pbar[0].total)
        pbar[0].refresh()

    def close():
        if pbar[0] is not None:
            pbar[0].close()

    return progress, close


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Group near-duplicate and burst photos and keep the best one per group."
    )
    parser.add_argument("--folder", required=True, help="Folder containing photos to organize")
    parser.add_argument(
        "--ext",
        default=",".join(sorted(e.lstrip(".") for e in cfg.IMAGE_EXTENSIONS)),
        help="Comma-separated extensions to include",
    )
    parser.add_argument("--settings", default=None, help="JSON settings file (grouping.*, scoring.*)")
    parser.add_argument(
        "--review",
        choices=["auto", "web"],
        default="auto",
        help="auto: keep the top-scoring photo per group; web: decide through the review API",
    )
    parser.add_argument("--port", type=int, default=cfg.REVIEW_PORT, help="Review API port (with --review web)")
    parser.add_argument("--move", default=None, metavar="DEST", help="Move photos not kept into DEST")
    parser.add_argument("--output-dir", default=".", help="Where to write groups.json and groups.scored.json")
    parser.add_argument("--no-faces", action="store_true", help="Skip face detection (face sub-scores are 0)")
    parser.add_argument("--no-clip", action="store_true", help="Skip embeddings (group by hash and time only)")
    parser.add_argument("--workers", type=int, default=None, help="Max photos scored in parallel per group")
    parser.add_argument("--timeout", type=float, default=None, help="Per-photo scoring timeout in seconds")
    parser.add_argument("--log-dir", default=None, help="Also write a rotating log file here")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    init_logging("DEBUG" if args.verbose else "INFO", args.log_dir)

    if not os.path.isdir(args.folder):
        print(f"Error: folder not found: {args.folder}", file=sys.stderr)
        sys.exit(1)
    photo_paths = collect_image_paths(args.folder, parse_extensions(args.ext))
    if not photo_paths:
        print(f"Error: no images found in {args.folder}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.settings:
            group_opts, score_opts = load_options(args.settings)
        else:
            group_opts, score_opts = GroupOptions(), ScoreOptions()
        if args.no_faces:
            score_opts.detect_faces = False
        if args.workers is not None:
            score_opts.max_workers = args.workers
        if args.timeout is not None:
            score_opts.photo_timeout = args.timeout
        result = run_pipeline(
            photo_paths,
            group_options=group_opts,
            scorer=CompositeScorer(score_opts),
            embedder=None if args.no_clip else ClipEmbedder(),
            reviewer=web_reviewer(args.port) if args.review == "web" else None,
            move_dest=args.move,
            output_dir=args.output_dir,
            make_progress=make_progress,
        )
    except OrganizerError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    for gi, group in enumerate(result.scored):
        for entry in group:
            mark = "keep" if entry.keep else "drop"
            print(f"{gi}\t{mark}\t{entry.score.score:.4f}\t{entry.path}")

    kept = sum(1 for g in result.scored for e in g if e.keep)
    print(
        f"\n{len(photo_paths)} photos, {len(result.groups)} groups, {kept} kept",
        file=sys.stderr,
    )
    if args.move:
        print(f"Moved {len(result.moved)} photos to {args.move}", file=sys.stderr)


if __name__ == "__main__":
    main()
