"""
Orchestration: collect photos -> build records -> group -> score -> review ->
(optionally) move duplicates. Writes groups.json and groups.scored.json.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Callable, Sequence

from loguru import logger

import config as cfg
from .features import ClipEmbedder, build_records
from .grouping import group_photos
from .models import Group, PhotoRecord, ScoreEntry
from .moves import move_duplicates
from .options import GroupOptions, ScoreOptions
from .scorer import CompositeScorer, apply_recommendation

ProgressFactory = Callable[[str], tuple[Callable[[int, int], None], Callable[[], None]]]
Reviewer = Callable[[list[list[ScoreEntry]]], list[list[int]]]


def collect_image_paths(folder: str, image_extensions: set[str] = cfg.IMAGE_EXTENSIONS) -> list[str]:
    """Image paths directly inside folder (no recursion), sorted by name."""
    paths = []
    if not os.path.isdir(folder):
        return paths
    for name in sorted(os.listdir(folder)):
        if name.startswith("."):
            continue
        ext = os.path.splitext(name)[1].lower()
        full = os.path.join(folder, name)
        if ext in image_extensions and os.path.isfile(full):
            paths.append(full)
    return paths


# --- Artifacts ---

def groups_to_json(groups: Sequence[Group]) -> list[list[dict]]:
    return [[p.to_dict() for p in g] for g in groups]


def scored_groups_to_json(scored: Sequence[Sequence[ScoreEntry]]) -> list[list[dict]]:
    return [[e.to_dict() for e in g] for g in scored]


def scored_groups_from_json(data: list[list[dict]]) -> list[list[ScoreEntry]]:
    return [[ScoreEntry.from_dict(e) for e in g] for g in data]


def save_json(path: str, data) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f)


def load_groups(path: str) -> list[Group]:
    """Read groups.json back as path-only records."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return [[PhotoRecord(path=m["path"]) for m in g] for g in data]


def load_scored_groups(path: str) -> list[list[ScoreEntry]]:
    with open(path, "r", encoding="utf-8") as f:
        return scored_groups_from_json(json.load(f))


# --- Review ---

def auto_review(scored: Sequence[Sequence[ScoreEntry]]) -> list[list[ScoreEntry]]:
    """Keep the highest-scoring member of each group."""
    return [apply_recommendation(g) for g in scored]


def apply_decisions(
    scored: Sequence[Sequence[ScoreEntry]],
    decisions: Sequence[Sequence[int]] | None,
) -> list[list[ScoreEntry]]:
    """
    Set keep from per-group lists of kept indices. Out-of-range indices are
    ignored; a group with no decision keeps its recommended member.
    """
    decisions = list(decisions or [])
    out = []
    for gi, group in enumerate(scored):
        if gi >= len(decisions) or decisions[gi] is None:
            out.append(apply_recommendation(group))
            continue
        kept = {int(i) for i in decisions[gi] if 0 <= int(i) < len(group)}
        for i, e in enumerate(group):
            e.keep = i in kept
        out.append(list(group))
    return out


def web_reviewer(port: int = cfg.REVIEW_PORT) -> Reviewer:
    def review(scored: list[list[ScoreEntry]]) -> list[list[int]]:
        from backend.review import review_groups

        return review_groups(scored, port=port)

    return review


@dataclass
class PipelineResult:
    records: list[PhotoRecord] = field(default_factory=list)
    groups: list[Group] = field(default_factory=list)
    scored: list[list[ScoreEntry]] = field(default_factory=list)
    moved: list[str] = field(default_factory=list)


def _noop_progress(desc: str):
    return None, lambda: None


def run_pipeline(
    photo_paths: Sequence[str],
    group_options: GroupOptions | None = None,
    score_options: ScoreOptions | None = None,
    embedder: ClipEmbedder | None = None,
    scorer: CompositeScorer | None = None,
    reviewer: Reviewer | None = None,
    move_dest: str | None = None,
    output_dir: str | None = None,
    make_progress: ProgressFactory = _noop_progress,
) -> PipelineResult:
    """
    Run every step on photo_paths. reviewer=None keeps the recommended photo
    in each group. Options are validated and models loaded before any photo
    is processed.
    """
    group_options = (group_options or GroupOptions()).validate()
    if scorer is None:
        scorer = CompositeScorer(score_options)
    scorer.warm_up()
    if embedder is not None:
        embedder.load()

    result = PipelineResult()
    progress, close = make_progress("Reading features")
    result.records = build_records(photo_paths, embedder, progress_callback=progress)
    close()

    progress, close = make_progress("Grouping photos")
    result.groups = group_photos(result.records, group_options, progress_callback=progress)
    close()
    logger.info("{} photos -> {} groups", len(result.records), len(result.groups))
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
        save_json(os.path.join(output_dir, cfg.GROUPS_FILENAME), groups_to_json(result.groups))

    progress, close = make_progress("Scoring images")
    scored = scorer.score_groups(result.groups, progress_callback=progress)
    close()

    if reviewer is None:
        result.scored = auto_review(scored)
    else:
        result.scored = apply_decisions(scored, reviewer(scored))
    if output_dir:
        save_json(os.path.join(output_dir, cfg.SCORED_GROUPS_FILENAME), scored_groups_to_json(result.scored))

    if move_dest:
        progress, close = make_progress("Moving duplicates")
        result.moved = move_duplicates(result.scored, move_dest, progress_callback=progress)
        close()
    return result

