"""
Composite scoring: six sub-scores per photo reduced to one clamped weighted
score, and the keeper recommendation for a scored group.

A failure while scoring one photo never aborts the group: decode problems zero
the pixel sub-scores, detector problems zero the face sub-scores, and anything
else (including a per-photo timeout) yields an all-zero breakdown.
"""

import math
import os
import threading
import time
from collections import deque
from typing import Callable, Iterable, Sequence

import numpy as np
from loguru import logger

from .face_detector import DetectorHandle, pick_best_face
from .models import ImageScore, PhotoRecord, ScoreBreakdown, ScoreEntry
from .options import ScoreOptions, ScoreWeights
from .quality import brightness_contrast, decode_image, face_signals, resize_for_analysis, sharpness
from .similarity import clamp01


def weighted_sum(breakdown: ScoreBreakdown, weights: ScoreWeights) -> float:
    """Clamped sum of weight * sub-score; weights need not add up to 1."""
    total = (
        weights.brightness * breakdown.brightness
        + weights.contrast * breakdown.contrast
        + weights.sharpness * breakdown.sharpness
        + weights.face_presence * breakdown.face_presence
        + weights.eyes_open * breakdown.eyes_open
        + weights.smiling * breakdown.smiling
    )
    return clamp01(total) if math.isfinite(total) else 0.0


def member_path(member) -> str:
    if isinstance(member, PhotoRecord):
        return member.path
    if isinstance(member, dict):
        return member["path"]
    return str(member)


def failed_score(path: str) -> ImageScore:
    return ImageScore(path=path, score=0.0, breakdown=ScoreBreakdown())


class CompositeScorer:
    """Scores photos with the configured weights and an injected detector handle."""

    def __init__(self, options: ScoreOptions | None = None, detector_handle: DetectorHandle | None = None):
        self.options = (options or ScoreOptions()).validate()
        if detector_handle is None:
            detector_handle = DetectorHandle() if self.options.detect_faces else DetectorHandle.disabled()
        self.detector_handle = detector_handle

    def warm_up(self) -> None:
        """Build the detector now so a missing model library fails before any photo is scored."""
        if self.options.detect_faces:
            self.detector_handle.get()

    def composite(self, breakdown: ScoreBreakdown) -> float:
        return weighted_sum(breakdown, self.options.weights)

    def _face_breakdown(self, img: np.ndarray, path: str) -> tuple[float, float, float]:
        if not self.options.detect_faces:
            return 0.0, 0.0, 0.0
        try:
            detector = self.detector_handle.get()
            if detector is None:
                return 0.0, 0.0, 0.0
            face = pick_best_face(detector.detect(img))
        except Exception as e:
            logger.warning("Face detection failed for {}: {}", path, e)
            return 0.0, 0.0, 0.0
        return face_signals(face, img.shape)

    def analyze(self, img: np.ndarray | None, path: str = "") -> ScoreBreakdown:
        """Sub-scores for a decoded BGR image; all zero when img is None."""
        if img is None:
            return ScoreBreakdown()
        small = resize_for_analysis(img, self.options.analysis_max_dim)
        brightness, contrast = brightness_contrast(small)
        sharp = sharpness(small)
        del small
        presence, eyes, smiling = self._face_breakdown(img, path)
        return ScoreBreakdown(
            brightness=brightness,
            contrast=contrast,
            sharpness=sharp,
            face_presence=presence,
            eyes_open=eyes,
            smiling=smiling,
        )

    def score_bytes(self, path: str, data: bytes) -> ImageScore:
        img = decode_image(data)
        if img is None:
            logger.warning("Could not decode {}", path)
        breakdown = self.analyze(img, path)
        return ImageScore(path=path, score=self.composite(breakdown), breakdown=breakdown)

    def score_image(self, photo) -> ImageScore:
        """Score one photo (PhotoRecord, {"path": ...} or a path string)."""
        path = os.path.abspath(member_path(photo))
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            logger.warning("Could not read {}: {}", path, e)
            data = b""
        return self.score_bytes(path, data)

    def _score_safely(self, photo) -> ImageScore:
        try:
            return self.score_image(photo)
        except Exception as e:
            path = os.path.abspath(member_path(photo))
            logger.warning("Scoring failed for {}: {}", path, e)
            return failed_score(path)

    def score_group(self, group: Sequence) -> list[ScoreEntry]:
        """
        Score every member concurrently (at most max_workers at a time) and
        return entries in member order with keep=False.

        Each member runs in its own daemon thread and gets photo_timeout seconds
        from the moment it starts. A member past its deadline gets a zero score
        and frees its slot for the next queued member; its thread is abandoned
        and never keeps the process alive.
        """
        if not group:
            return []
        workers = min(self.options.max_workers, len(group))
        timeout = self.options.photo_timeout
        results: dict[int, ImageScore] = {}
        abandoned: set[int] = set()
        cond = threading.Condition()

        def run(i: int, member) -> None:
            score = self._score_safely(member)
            with cond:
                if i not in abandoned:
                    results[i] = score
                cond.notify()

        pending = deque(range(len(group)))
        running: dict[int, float] = {}  # member index -> start time
        with cond:
            while pending or running:
                while pending and len(running) < workers:
                    i = pending.popleft()
                    running[i] = time.monotonic()
                    threading.Thread(target=run, args=(i, group[i]), name=f"score-{i}", daemon=True).start()
                now = time.monotonic()
                for i, started in list(running.items()):
                    if i in results:
                        del running[i]
                    elif timeout is not None and now - started >= timeout:
                        logger.warning("Scoring timed out for {}", member_path(group[i]))
                        abandoned.add(i)
                        del running[i]
                if not running or (pending and len(running) < workers):
                    continue
                wait_for = None
                if timeout is not None:
                    wait_for = max(0.0, min(running.values()) + timeout - time.monotonic())
                cond.wait(wait_for)

            entries = []
            for i, member in enumerate(group):
                score = results.get(i)
                if score is None:
                    score = failed_score(os.path.abspath(member_path(member)))
                entries.append(ScoreEntry(path=member_path(member), score=score, keep=False))
            return entries

    def score_groups(
        self,
        groups: Iterable[Sequence],
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> list[list[ScoreEntry]]:
        groups = list(groups)
        total = sum(len(g) for g in groups)
        done = 0
        scored = []
        for g in groups:
            scored.append(self.score_group(g))
            done += len(g)
            if progress_callback and total:
                progress_callback(done, total)
        return scored


def recommend(entries: Sequence[ScoreEntry]) -> int:
    """Index of the highest score (first one on ties); -1 for an empty group."""
    best_idx = -1
    best = None
    for i, e in enumerate(entries):
        if best is None or e.score.score > best:
            best = e.score.score
            best_idx = i
    return best_idx


def apply_recommendation(entries: Sequence[ScoreEntry]) -> list[ScoreEntry]:
    """Mark only the recommended member as kept."""
    idx = recommend(entries)
    for i, e in enumerate(entries):
        e.keep = i == idx
    return list(entries)
