"""
Similarity grouping: partition photos into connected components of the
"linked" relation.

Two photos are linked when ANY of these fires:
  - pHash similarity >= phash_threshold
  - capture times within seconds_separated
  - embedding cosine > cosine_similarity_threshold, provided the capture times
    (when both are known) are within cosine_max_minutes

Groups are the transitive closure: A~B and B~C puts A, B and C together even
when A and C are not directly linked. Missing signals never create links.
"""

from dataclasses import dataclass
from typing import Callable, Sequence

import numpy as np
from loguru import logger

import config as cfg
from .models import Group, PhotoRecord
from .options import GroupOptions
from .similarity import cosine_similarity, hash_similarity, parse_hash

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class LinkSignals:
    """Pairwise signals; None means the signal is unavailable for this pair."""

    hash_similarity: float | None = None
    time_delta_ms: float | None = None
    cosine_similarity: float | None = None


def compute_signals(a: PhotoRecord, b: PhotoRecord) -> LinkSignals:
    time_delta = None
    if a.capture_time is not None and b.capture_time is not None:
        time_delta = abs(a.capture_time - b.capture_time)
    cos = None
    if a.embedding and b.embedding and len(a.embedding) == len(b.embedding):
        cos = cosine_similarity(a.embedding, b.embedding)
    return LinkSignals(
        hash_similarity=hash_similarity(a.hash, b.hash),
        time_delta_ms=time_delta,
        cosine_similarity=cos,
    )


def signals_link(signals: LinkSignals, options: GroupOptions) -> bool:
    """OR of the three link rules over an already computed signal bundle."""
    if signals.hash_similarity is not None and signals.hash_similarity >= options.phash_threshold:
        return True
    dt = signals.time_delta_ms
    if dt is not None and dt <= options.seconds_separated * 1000:
        return True
    if signals.cosine_similarity is None or signals.cosine_similarity <= options.cosine_similarity_threshold:
        return False
    # Unknown time on either side counts as inside the window.
    return dt is None or dt <= options.cosine_max_minutes * 60000


def linked(a: PhotoRecord, b: PhotoRecord, options: GroupOptions | None = None) -> bool:
    return signals_link(compute_signals(a, b), options or GroupOptions())


def group_photos(
    photos: Sequence[PhotoRecord],
    options: GroupOptions | None = None,
    progress_callback: ProgressCallback | None = None,
) -> list[Group]:
    """
    Flood-fill connected components over the implicit link graph.

    Each frontier photo rescans all unvisited photos, so this is O(n^2) pair
    checks in the worst case. Members appear in discovery order; groups appear
    in seed order. One-photo groups are emitted unless
    options.include_singletons is False.
    """
    options = (options or GroupOptions()).validate()
    used: set[str] = set()
    groups: list[Group] = []
    total = len(photos)

    for i, seed in enumerate(photos):
        if progress_callback and total:
            progress_callback(i + 1, total)
        if seed.path in used:
            continue
        group: Group = []
        stack = [seed]
        used.add(seed.path)
        while stack:
            current = stack.pop()
            group.append(current)
            for other in photos:
                if other.path in used:
                    continue
                if linked(current, other, options):
                    used.add(other.path)
                    stack.append(other)
        if len(group) > 1 or options.include_singletons:
            groups.append(group)

    logger.debug("Grouped {} photos into {} groups", total, len(groups))
    return groups


# --- Vectorized variant ---

_POPCOUNT8 = np.array([bin(i).count("1") for i in range(256)], dtype=np.uint8)


def _hash_link_matrix(photos: Sequence[PhotoRecord], threshold: float) -> np.ndarray:
    n = len(photos)
    parsed = [parse_hash(p.hash) for p in photos]
    valid = np.array([h is not None for h in parsed], dtype=bool)
    # Hashes wider than 64 bits cannot be packed; fall back to the scalar rule for them.
    wide = [i for i, h in enumerate(parsed) if h is not None and h >= 1 << 64]
    values = np.array([h if h is not None and h < 1 << 64 else 0 for h in parsed], dtype=np.uint64)
    xor = values[:, None] ^ values[None, :]
    bits = _POPCOUNT8[xor.view(np.uint8)].reshape(n, n, 8).sum(axis=2, dtype=np.int64)
    sim = 1.0 - bits / cfg.PHASH_BITS
    out = valid[:, None] & valid[None, :] & (sim >= threshold)
    for i in wide:
        for j in range(n):
            s = hash_similarity(photos[i].hash, photos[j].hash)
            out[i, j] = out[j, i] = s is not None and s >= threshold
    return out


def _cosine_matrix(photos: Sequence[PhotoRecord]) -> tuple[np.ndarray, np.ndarray]:
    """Cosine similarities and a mask of pairs whose embeddings are comparable."""
    n = len(photos)
    cos = np.zeros((n, n), dtype=np.float64)
    comparable = np.zeros((n, n), dtype=bool)
    by_dim: dict[int, list[int]] = {}
    for i, p in enumerate(photos):
        if p.embedding:
            by_dim.setdefault(len(p.embedding), []).append(i)
    for idx in by_dim.values():
        emb = np.array([photos[i].embedding for i in idx], dtype=np.float64)
        norms = np.linalg.norm(emb, axis=1)
        denom = norms[:, None] * norms[None, :]
        with np.errstate(divide="ignore", invalid="ignore"):
            sub = np.where(denom > 0, (emb @ emb.T) / denom, 0.0)
        sub = np.nan_to_num(sub, nan=0.0, posinf=0.0, neginf=0.0)
        grid = np.ix_(idx, idx)
        cos[grid] = sub
        comparable[grid] = True
    return cos, comparable


def link_matrix(photos: Sequence[PhotoRecord], options: GroupOptions) -> np.ndarray:
    """Boolean n x n matrix of the link relation (diagonal is True)."""
    n = len(photos)
    if n == 0:
        return np.zeros((0, 0), dtype=bool)
    has_time = np.array([p.capture_time is not None for p in photos], dtype=bool)
    times = np.array([p.capture_time if p.capture_time is not None else 0 for p in photos], dtype=np.float64)
    both_time = has_time[:, None] & has_time[None, :]
    dt = np.abs(times[:, None] - times[None, :])

    burst = both_time & (dt <= options.seconds_separated * 1000)
    cos, comparable = _cosine_matrix(photos)
    in_window = ~both_time | (dt <= options.cosine_max_minutes * 60000)
    semantic = comparable & (cos > options.cosine_similarity_threshold) & in_window

    links = _hash_link_matrix(photos, options.phash_threshold) | burst | semantic
    np.fill_diagonal(links, True)
    return links


def group_photos_indexed(
    photos: Sequence[PhotoRecord],
    options: GroupOptions | None = None,
    progress_callback: ProgressCallback | None = None,
) -> list[Group]:
    """
    Same result as group_photos, computed from a precomputed link matrix.
    Uses O(n^2) memory; intended for batches up to a few thousand photos.
    """
    options = (options or GroupOptions()).validate()
    seen: set[str] = set()
    unique: list[PhotoRecord] = []
    for p in photos:
        if p.path not in seen:
            seen.add(p.path)
            unique.append(p)

    links = link_matrix(unique, options)
    used = np.zeros(len(unique), dtype=bool)
    groups: list[Group] = []
    total = len(unique)

    for seed in range(total):
        if progress_callback and total:
            progress_callback(seed + 1, total)
        if used[seed]:
            continue
        group: Group = []
        stack = [seed]
        used[seed] = True
        while stack:
            current = stack.pop()
            group.append(unique[current])
            found = np.flatnonzero(links[current] & ~used)
            used[found] = True
            stack.extend(int(j) for j in found)
        if len(group) > 1 or options.include_singletons:
            groups.append(group)

    logger.debug("Grouped {} photos into {} groups (indexed)", total, len(groups))
    return groups
