"""
Similarity and math helpers shared by grouping and scoring.
All of them return a defined value (usually 0) for missing or degenerate input.
"""

import math
import string
from typing import Sequence

import numpy as np
from loguru import logger

import config as cfg


def clamp01(x: float) -> float:
    if x != x:  # NaN
        return 0.0
    return max(0.0, min(1.0, float(x)))


def parse_hash(hash_hex: str | None) -> int | None:
    """Hex pHash string -> int, or None if absent or malformed."""
    if hash_hex is None:
        return None
    s = str(hash_hex).strip().lower()
    if s.startswith("0x"):
        s = s[2:]
    if not s:
        return None
    if not all(c in string.hexdigits for c in s):
        logger.debug("Ignoring malformed hash {!r}", hash_hex)
        return None
    return int(s, 16)


def hamming_distance(a: int, b: int) -> int:
    return bin(a ^ b).count("1")


def hash_similarity(hash_a: str | None, hash_b: str | None) -> float | None:
    """1 - hamming/64 for two hex pHashes; None if either is unavailable."""
    a = parse_hash(hash_a)
    b = parse_hash(hash_b)
    if a is None or b is None:
        return None
    return 1.0 - hamming_distance(a, b) / cfg.PHASH_BITS


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Dot product over L2 norms; 0.0 for empty, mismatched or zero-norm vectors."""
    if a is None or b is None or len(a) == 0 or len(b) == 0 or len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    na, nb = np.linalg.norm(va), np.linalg.norm(vb)
    if na <= 0 or nb <= 0:
        return 0.0
    sim = float(np.dot(va, vb) / (na * nb))
    return sim if math.isfinite(sim) else 0.0
