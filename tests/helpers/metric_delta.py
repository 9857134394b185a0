"""
Helpers for validating metric value changes during tests.
"""

from contextlib import contextmanager


def _value(metric) -> float:
    if not hasattr(metric, "_value"):
        raise ValueError(f"Metric {metric} doesn't have a _value attribute")
    return metric._value.get()


@contextmanager
def metric_delta(metric, expected_delta=1):
    """
    Validate that a counter or gauge (or a labeled child) changes by ``expected_delta``.

    Usage:
        with metric_delta(METRICS["pages_fetched"].labels(outcome="ok")):
            await client.fetch(url)
    """
    initial_value = _value(metric)

    yield

    actual_delta = _value(metric) - initial_value
    if actual_delta != expected_delta:
        raise AssertionError(f"Expected metric to change by {expected_delta}, but it changed by {actual_delta}")


def get_histogram_count(histogram):
    """Get the current observation count for a histogram."""
    for metric_family in histogram.collect():
        for sample in metric_family.samples:
            if sample.name.endswith("_count"):
                return sample.value
    return 0.0


@contextmanager
def histogram_observes(histogram, min_observations=1):
    """Validate that ``histogram`` records at least ``min_observations`` observations."""
    initial_count = get_histogram_count(histogram)

    yield

    actual_observations = get_histogram_count(histogram) - initial_count
    if actual_observations < min_observations:
        raise AssertionError(
            f"Expected at least {min_observations} histogram observations, but got {actual_observations}"
        )
