from __future__ import annotations

from hypothesis import given, strategies as st

from postload.metrics import percentile_at, summarize

latency_lists = st.lists(st.integers(min_value=0, max_value=60_000), min_size=1, max_size=200)
percentiles = st.floats(min_value=0.01, max_value=100.0)


def test_percentile_of_empty_sample_is_zero() -> None:
    assert percentile_at([], 50) == 0
    assert percentile_at([], 99) == 0


def test_percentile_nearest_rank() -> None:
    sample = list(range(1, 21))
    assert percentile_at(sample, 50) == 10
    assert percentile_at(sample, 95) == 19
    assert percentile_at(sample, 99) == 20
    assert percentile_at(sample, 100) == 20
    assert percentile_at(sample, 5) == 1


def test_percentile_clamps_rank() -> None:
    sample = [3, 7, 9]
    assert percentile_at(sample, 0.0001) == 3
    assert percentile_at(sample, 250) == 9


@given(value=st.integers(min_value=0, max_value=10_000), p=percentiles)
def test_single_element_percentile(value: int, p: float) -> None:
    assert percentile_at([value], p) == value


@given(sample=latency_lists, p1=percentiles, p2=percentiles)
def test_percentile_monotonic(sample: list[int], p1: float, p2: float) -> None:
    ordered = sorted(sample)
    low, high = min(p1, p2), max(p1, p2)
    assert percentile_at(ordered, low) <= percentile_at(ordered, high)


@given(sample=latency_lists, p=percentiles)
def test_percentile_returns_a_sample(sample: list[int], p: float) -> None:
    ordered = sorted(sample)
    value = percentile_at(ordered, p)
    assert value in sample
    assert percentile_at(ordered, p) == value


def test_summarize_empty() -> None:
    stats = summarize([])
    assert stats.count == 0
    assert stats.mean_ms == 0.0
    assert (stats.min_ms, stats.max_ms, stats.p50_ms, stats.p95_ms, stats.p99_ms) == (0, 0, 0, 0, 0)


def test_summarize_unsorted_input() -> None:
    stats = summarize([40, 10, 30, 20])
    assert stats.count == 4
    assert stats.mean_ms == 25.0
    assert stats.min_ms == 10
    assert stats.max_ms == 40
    assert stats.p50_ms == 20
    assert stats.p95_ms == 40
