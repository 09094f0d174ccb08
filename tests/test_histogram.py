"""Histogram entropy and incremental update behaviour."""

from __future__ import annotations

import math

import numpy as np
import pytest

from decisionjungle.core.histogram import ClassHistogram, EfficientEntropyHistogram, weighted_entropies


def reference_entropy(counts: list[int]) -> float:
    mass = sum(counts)
    if mass == 0:
        return 0.0
    return -sum((c / mass) * math.log2(c / mass) for c in counts if c > 0)


@pytest.mark.parametrize("cls", [ClassHistogram, EfficientEntropyHistogram])
def test_entropy_zero_for_empty_and_single_class(cls) -> None:
    assert cls(4).entropy() == 0.0
    assert cls.from_counts([0, 7, 0, 0]).entropy() == 0.0
    assert cls.from_counts([1]).entropy() == 0.0


@pytest.mark.parametrize("cls", [ClassHistogram, EfficientEntropyHistogram])
def test_entropy_positive_for_mixed_classes(cls) -> None:
    assert cls.from_counts([1, 3]).entropy() > 0.0
    assert cls.from_counts([2, 2]).entropy() == pytest.approx(1.0)
    assert cls.from_counts([1, 1, 1, 1]).entropy() == pytest.approx(2.0)


@pytest.mark.parametrize("counts", [[3, 1, 4, 0, 2], [10, 0, 1], [5, 5, 5]])
def test_entropy_matches_definition(counts) -> None:
    expected = reference_entropy(counts)
    assert ClassHistogram.from_counts(counts).entropy() == pytest.approx(expected)
    assert EfficientEntropyHistogram.from_counts(counts).entropy() == pytest.approx(expected)


@pytest.mark.parametrize("counts", [[0, 0, 0], [1, 0, 0], [5, 2, 9], [0, 1, 1]])
@pytest.mark.parametrize("index", [0, 1, 2])
def test_add_one_then_sub_one_restores_state(counts, index) -> None:
    hist = EfficientEntropyHistogram.from_counts(counts)
    before_counts = hist.counts.copy()
    before_terms = hist.terms
    before_mass = hist.mass
    before_entropy = hist.entropy()

    hist.add_one(index)
    hist.sub_one(index)

    np.testing.assert_array_equal(hist.counts, before_counts)
    np.testing.assert_array_equal(hist.terms, before_terms)
    assert hist.mass == before_mass
    assert hist.entropy() == before_entropy


def test_unit_update_and_inverse_restore_cached_entropy_exactly() -> None:
    rng = np.random.default_rng(1)
    for _ in range(2000):
        counts = rng.integers(0, 12, size=4).tolist()
        index = int(rng.integers(0, 4))
        hist = EfficientEntropyHistogram.from_counts(counts)
        before = hist.weighted_entropy()
        hist.add_one(index)
        hist.sub_one(index)
        assert hist.weighted_entropy() == before
        if hist.get(index) > 0:
            hist.sub_one(index)
            hist.add_one(index)
            assert hist.weighted_entropy() == before

    hist = EfficientEntropyHistogram.from_counts([2, 3, 0, 8])
    before = hist.entropy()
    hist.add_one(3)
    hist.sub_one(3)
    assert hist.entropy() == before


def test_efficient_cache_tracks_random_updates() -> None:
    rng = np.random.default_rng(0)
    hist = EfficientEntropyHistogram(5)
    for _ in range(500):
        index = int(rng.integers(0, 5))
        if hist.get(index) > 0 and rng.random() < 0.4:
            hist.sub_one(index)
        else:
            hist.add_one(index)
        plain = ClassHistogram.from_counts(hist.counts)
        assert hist.mass == plain.mass
        assert hist.entropy() == pytest.approx(plain.entropy(), abs=1e-9)
        assert hist.is_pure() == plain.is_pure()


def test_mass_invariant_under_mutation() -> None:
    hist = ClassHistogram(3)
    hist.set(1, 4)
    hist.add(0, 2)
    hist.add_one(2)
    hist.sub_one(1)
    assert hist.to_list() == [2, 3, 1]
    assert hist.mass == 6
    hist.reset()
    assert hist.mass == 0
    assert hist.to_list() == [0, 0, 0]


def test_negative_bins_rejected() -> None:
    hist = ClassHistogram(2)
    with pytest.raises(ValueError):
        hist.set(0, -1)
    with pytest.raises(ValueError):
        hist.sub_one(1)
    with pytest.raises(ValueError):
        ClassHistogram.from_counts([1, -2])


def test_virtual_combination_does_not_mutate() -> None:
    a = ClassHistogram.from_counts([3, 0, 1])
    b = ClassHistogram.from_counts([0, 2, 1])
    c = ClassHistogram.from_counts([1, 1, 0])

    assert a.entropy(b) == pytest.approx(reference_entropy([3, 2, 2]))
    assert a.entropy(b, c) == pytest.approx(reference_entropy([4, 3, 2]))
    assert a.combined_mass(b, c) == 9
    assert a.weighted_entropy(b) == pytest.approx(7 * reference_entropy([3, 2, 2]))
    assert a.to_list() == [3, 0, 1]
    assert b.to_list() == [0, 2, 1]


def test_argmax_prefers_lowest_label() -> None:
    assert ClassHistogram.from_counts([2, 5, 5]).argmax() == 1
    assert ClassHistogram.from_counts([0, 0, 1]).argmax() == 2
    assert ClassHistogram(3).argmax() == -1


def test_from_labels_counts_each_class() -> None:
    hist = ClassHistogram.from_labels(np.array([0, 2, 2, 1, 2]), 4)
    assert hist.to_list() == [1, 1, 3, 0]


def test_weighted_entropies_vectorised() -> None:
    counts = np.array([[3, 1, 0], [0, 0, 0], [2, 2, 2], [0, 5, 0]])
    expected = [ClassHistogram.from_counts(row).weighted_entropy() for row in counts]
    np.testing.assert_allclose(weighted_entropies(counts), expected, atol=1e-12)
