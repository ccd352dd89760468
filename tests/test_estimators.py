# Author      : Tyson Limato
# Date        : 2025-7-03
# File Name   : test_estimators.py
import math

import pytest

from estimators import DartEstimator, fixed_seed, time_seed


def test_same_seed_same_hits():
    est = DartEstimator()
    assert est.compute_local(50_000, 7) == est.compute_local(50_000, 7)


def test_hits_bounded_by_share():
    hits = DartEstimator(chunk_size=1000).compute_local(12_345, 3)
    assert 0 <= hits <= 12_345


def test_zero_share():
    assert DartEstimator().compute_local(0, 1) == 0


def test_negative_share_rejected():
    with pytest.raises(ValueError):
        DartEstimator().compute_local(-1, 1)


def test_chunk_size_must_be_positive():
    with pytest.raises(ValueError):
        DartEstimator(chunk_size=0)


def test_estimate_is_close_to_pi():
    est = DartEstimator(chunk_size=100_000)
    total = 400_000
    hits = est.compute_local(total, 2025)
    assert est.combine(hits, total) == pytest.approx(math.pi, abs=0.02)


@pytest.mark.parametrize("sum_hits, total, expected", [
    (0, 1000, 0.0),
    (250, 1000, 1.0),
    (1000, 1000, 4.0),
])
def test_combine(sum_hits, total, expected):
    assert DartEstimator().combine(sum_hits, total) == pytest.approx(expected)


def test_fixed_seed_depends_only_on_rank():
    source = fixed_seed(100)
    assert source(0) == 100
    assert source(3) == 103
    assert source(3) == fixed_seed(100)(3)


def test_time_seed_differs_across_ranks():
    assert time_seed(0) != time_seed(1)
