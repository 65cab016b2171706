import itertools
import math

import numpy as np
import pytest

from photo_organizer.errors import ConfigError
from photo_organizer.grouping import (
    LinkSignals,
    compute_signals,
    group_photos,
    group_photos_indexed,
    link_matrix,
    linked,
    signals_link,
)
from photo_organizer.models import PhotoRecord
from photo_organizer.options import GroupOptions

T0 = 1_700_000_000_000  # epoch ms
HOUR = 3_600_000
DAY = 24 * HOUR


def paths(groups):
    return [[p.path for p in g] for g in groups]


class TestSignalsLink:
    """The OR predicate over a signal bundle, without photo records."""

    opts = GroupOptions()

    def test_nothing_available_does_not_link(self):
        assert not signals_link(LinkSignals(), self.opts)

    def test_hash_alone(self):
        assert signals_link(LinkSignals(hash_similarity=0.85), self.opts)
        assert not signals_link(LinkSignals(hash_similarity=0.84), self.opts)

    def test_burst_alone(self):
        assert signals_link(LinkSignals(time_delta_ms=10_000), self.opts)
        assert not signals_link(LinkSignals(time_delta_ms=10_001), self.opts)

    def test_cosine_is_strictly_above_threshold(self):
        assert not signals_link(LinkSignals(cosine_similarity=0.8), self.opts)
        assert signals_link(LinkSignals(cosine_similarity=0.81), self.opts)

    def test_cosine_bounded_by_window(self):
        inside = LinkSignals(cosine_similarity=0.9, time_delta_ms=1440 * 60000)
        outside = LinkSignals(cosine_similarity=0.9, time_delta_ms=1440 * 60000 + 1)
        assert signals_link(inside, self.opts)
        assert not signals_link(outside, self.opts)

    def test_cosine_without_time_counts_as_in_window(self):
        assert signals_link(LinkSignals(cosine_similarity=0.9, time_delta_ms=None), self.opts)


class TestLinked:
    def test_identical_hashes_always_link(self):
        a = PhotoRecord("a", hash="8f3c2a19d0e4b765", capture_time=T0)
        b = PhotoRecord("b", hash="8f3c2a19d0e4b765", capture_time=T0 + 30 * DAY, embedding=[1.0, 0.0])
        assert linked(a, b, GroupOptions(phash_threshold=1.0))

    def test_hash_threshold_boundary(self):
        base = PhotoRecord("a", hash="0000000000000000")
        nine_bits = PhotoRecord("b", hash="00000000000001ff")
        ten_bits = PhotoRecord("c", hash="00000000000003ff")
        assert linked(base, nine_bits)  # 1 - 9/64 = 0.859
        assert not linked(base, ten_bits)  # 1 - 10/64 = 0.844

    def test_temporal_only(self):
        opts = GroupOptions(seconds_separated=10)
        a = PhotoRecord("a", capture_time=T0)
        assert linked(a, PhotoRecord("b", capture_time=T0 + 2000), opts)
        assert not linked(a, PhotoRecord("c", capture_time=T0 + 20000), opts)

    def test_cosine_within_window(self):
        opts = GroupOptions(cosine_similarity_threshold=0.8, cosine_max_minutes=1440)
        a = PhotoRecord("a", capture_time=T0, embedding=[1.0, 0.0])
        b = PhotoRecord("b", capture_time=T0 + 2 * HOUR, embedding=[0.85, math.sqrt(1 - 0.85**2)])
        assert linked(a, b, opts)

    def test_cosine_outside_window(self):
        opts = GroupOptions(cosine_similarity_threshold=0.8, cosine_max_minutes=60)
        a = PhotoRecord("a", capture_time=T0, embedding=[0.3, 0.4, 0.5])
        b = PhotoRecord("b", capture_time=T0 + 3 * DAY, embedding=[0.3, 0.4, 0.5])
        assert not linked(a, b, opts)

    def test_cosine_with_one_time_missing(self):
        a = PhotoRecord("a", capture_time=T0, embedding=[1.0, 0.0])
        b = PhotoRecord("b", capture_time=None, embedding=[1.0, 0.0])
        assert linked(a, b, GroupOptions(cosine_max_minutes=1))

    def test_missing_signals_never_link(self):
        a = PhotoRecord("a")
        b = PhotoRecord("b")
        assert not linked(a, b)
        assert compute_signals(a, b) == LinkSignals()

    def test_empty_or_zero_embedding_does_not_link(self):
        zero = PhotoRecord("a", embedding=[0.0, 0.0])
        empty = PhotoRecord("b", embedding=[])
        unit = PhotoRecord("c", embedding=[1.0, 0.0])
        assert not linked(zero, unit)
        assert not linked(empty, unit)
        assert compute_signals(empty, unit).cosine_similarity is None
        assert compute_signals(zero, unit).cosine_similarity == 0.0

    @pytest.mark.parametrize("bad", ["xyz", "-1", "+ff", "1_0"])
    def test_malformed_hash_is_treated_as_missing(self, bad):
        a = PhotoRecord("a", hash=bad)
        b = PhotoRecord("b", hash=bad)
        assert not linked(a, b)
        assert compute_signals(a, b).hash_similarity is None


def random_photos(seed, n=60):
    """Clustered times, near-duplicate hashes and a few missing signals."""
    rng = np.random.default_rng(seed)
    photos = []
    bases = [int(rng.integers(0, 2**62)) for _ in range(5)]
    for i in range(n):
        h = None
        if rng.random() < 0.8:
            value = bases[int(rng.integers(0, 5))]
            for bit in rng.choice(64, size=int(rng.integers(0, 16)), replace=False):
                value ^= 1 << int(bit)
            h = f"{value:016x}"
        t = None
        if rng.random() < 0.8:
            t = int(T0 + rng.integers(0, 5) * DAY + rng.integers(0, 120_000))
        emb = []
        if rng.random() < 0.7:
            emb = [float(x) for x in rng.normal(size=6)]
        photos.append(PhotoRecord(f"p{i:03d}", hash=h, capture_time=t, embedding=emb))
    return photos


OPTION_SETS = [
    GroupOptions(),
    GroupOptions(phash_threshold=0.9, seconds_separated=2, cosine_similarity_threshold=0.5, cosine_max_minutes=60),
    GroupOptions(phash_threshold=1.0, seconds_separated=0, cosine_similarity_threshold=0.95),
    GroupOptions(include_singletons=False),
]


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_linked_is_symmetric(seed):
    photos = random_photos(seed, n=25)
    opts = GroupOptions(cosine_similarity_threshold=0.3)
    for a, b in itertools.combinations(photos, 2):
        assert linked(a, b, opts) == linked(b, a, opts)


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_groups_partition_the_input(seed):
    photos = random_photos(seed)
    groups = group_photos(photos)
    seen = [p for g in paths(groups) for p in g]
    assert sorted(seen) == sorted(p.path for p in photos)
    assert len(seen) == len(set(seen))


def test_transitive_closure():
    a = PhotoRecord("a", capture_time=T0)
    b = PhotoRecord("b", capture_time=T0 + 8000)
    c = PhotoRecord("c", capture_time=T0 + 16000)
    assert not linked(a, c)
    assert paths(group_photos([a, b, c])) == [["a", "b", "c"]]


def test_discovery_order_and_singletons():
    a = PhotoRecord("a", capture_time=T0)
    x = PhotoRecord("x", capture_time=T0 + DAY)
    b = PhotoRecord("b", capture_time=T0 + 1000)
    c = PhotoRecord("c", capture_time=T0 + 2000)
    # seed a absorbs b and c (stack order: c is popped before b)
    assert paths(group_photos([a, x, b, c])) == [["a", "c", "b"], ["x"]]
    assert paths(group_photos([a, x, b, c], GroupOptions(include_singletons=False))) == [["a", "c", "b"]]


def test_empty_input():
    assert group_photos([]) == []
    assert group_photos_indexed([]) == []


def test_duplicate_paths_are_grouped_once():
    a = PhotoRecord("a", capture_time=T0)
    dup = PhotoRecord("a", capture_time=T0 + DAY)
    assert paths(group_photos([a, dup])) == [["a"]]
    assert paths(group_photos_indexed([a, dup])) == [["a"]]


def test_invalid_options_raise():
    with pytest.raises(ConfigError):
        group_photos([PhotoRecord("a")], GroupOptions(phash_threshold=1.5))


def test_progress_callback_reaches_total():
    calls = []
    group_photos([PhotoRecord("a"), PhotoRecord("b")], progress_callback=lambda i, n: calls.append((i, n)))
    assert calls[-1] == (2, 2)


class TestIndexedGrouping:
    """The matrix-based grouper must agree with the scanning one."""

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    @pytest.mark.parametrize("opts", OPTION_SETS)
    def test_same_groups_as_reference(self, seed, opts):
        photos = random_photos(seed)
        assert paths(group_photos_indexed(photos, opts)) == paths(group_photos(photos, opts))

    def test_link_matrix_matches_pairwise_predicate(self):
        photos = random_photos(7, n=30)
        opts = GroupOptions(cosine_similarity_threshold=0.4)
        links = link_matrix(photos, opts)
        for i, j in itertools.combinations(range(len(photos)), 2):
            assert links[i, j] == linked(photos[i], photos[j], opts)
        assert links.diagonal().all()

    def test_mixed_embedding_sizes_are_not_compared(self):
        a = PhotoRecord("a", embedding=[1.0, 0.0])
        b = PhotoRecord("b", embedding=[1.0, 0.0, 0.0])
        c = PhotoRecord("c", embedding=[1.0, 0.0])
        assert paths(group_photos_indexed([a, b, c])) == paths(group_photos([a, b, c])) == [["a", "c"], ["b"]]

    @pytest.mark.parametrize("bad", ["-1", "+ff", "1_0", "zz"])
    def test_malformed_hashes_do_not_break_matrix(self, bad):
        photos = random_photos(5, n=20)
        photos[3] = PhotoRecord("bad-1", hash=bad, capture_time=photos[3].capture_time)
        photos[11] = PhotoRecord("bad-2", hash=bad)
        indexed = paths(group_photos_indexed(photos))
        assert indexed == paths(group_photos(photos))
        assert ["bad-2"] in indexed
