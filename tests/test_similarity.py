import math

import pytest

from photo_organizer.similarity import clamp01, cosine_similarity, hamming_distance, hash_similarity, parse_hash


def test_clamp01():
    assert clamp01(-0.5) == 0.0
    assert clamp01(1.7) == 1.0
    assert clamp01(0.25) == 0.25
    assert clamp01(float("nan")) == 0.0


def test_parse_hash_accepts_prefix_and_rejects_garbage():
    assert parse_hash("0xff") == 255
    assert parse_hash("FF") == 255
    assert parse_hash(None) is None
    assert parse_hash("") is None
    assert parse_hash("not-hex") is None


@pytest.mark.parametrize("value", ["-1", "+ff", "1_0", "0x-1", " f f "])
def test_parse_hash_rejects_signs_and_separators(value):
    assert parse_hash(value) is None


def test_hamming_distance():
    assert hamming_distance(0b1011, 0b0001) == 2
    assert hamming_distance(0, (1 << 64) - 1) == 64


def test_hash_similarity_identical_and_opposite():
    assert hash_similarity("ffffffffffffffff", "ffffffffffffffff") == 1.0
    assert hash_similarity("ffffffffffffffff", "0000000000000000") == 0.0
    # 8 differing bits
    assert hash_similarity("ff00000000000000", "0000000000000000") == pytest.approx(1 - 8 / 64)


def test_hash_similarity_missing_side():
    assert hash_similarity(None, "ffffffffffffffff") is None
    assert hash_similarity("ffff", "zz") is None


def test_cosine_similarity_basic():
    assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
    assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
    assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)
    assert cosine_similarity([1, 0], [0.85, math.sqrt(1 - 0.85**2)]) == pytest.approx(0.85)


@pytest.mark.parametrize(
    "a,b",
    [([], [1.0, 2.0]), ([1.0], []), ([], []), ([0.0, 0.0], [1.0, 1.0]), ([1.0, 2.0], [1.0, 2.0, 3.0])],
)
def test_cosine_similarity_degenerate_is_zero(a, b):
    sim = cosine_similarity(a, b)
    assert sim == 0.0
    assert not math.isnan(sim)
