"""Vectors of metrics that share a descriptor and differ in label values."""

from __future__ import annotations

import threading
from typing import Callable, Generic, Mapping, Sequence, TypeVar

from .registry import Collector
from .value import (
    Desc,
    InconsistentCardinalityError,
    MetricFamily,
    MetricsError,
    MetricType,
)

M = TypeVar("M")


def _describe(opts) -> Desc:
    if isinstance(opts, Desc):
        return opts
    return opts.describe()


class MetricVec(Collector, Generic[M]):
    """A collector bundling metrics of one name that differ in label values.

    ``builder`` is called as ``builder(opts, label_values)`` to create the
    metric for a label combination the first time it is requested.  The
    created metrics must offer a ``metric()`` method returning a sample.
    """

    def __init__(
        self,
        metric_type: MetricType,
        builder: Callable[[object, Sequence[str]], M],
        opts,
    ) -> None:
        self._desc = _describe(opts)
        self.metric_type = MetricType(metric_type)
        self._builder = builder
        self.opts = opts
        self._children: dict[tuple[str, ...], M] = {}
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"MetricVec({self._desc.fq_name!r})"

    def _key_from_values(self, vals: Sequence[str]) -> tuple[str, ...]:
        key = tuple(vals)
        expected = len(self._desc.variable_labels)
        if len(key) != expected:
            raise InconsistentCardinalityError(expected, len(key))
        return key

    def _key_from_labels(self, labels: Mapping[str, str]) -> tuple[str, ...]:
        expected = len(self._desc.variable_labels)
        if len(labels) != expected:
            raise InconsistentCardinalityError(expected, len(labels))
        values = []
        for name in self._desc.variable_labels:
            if name not in labels:
                raise MetricsError(f"label name {name} missing in label map")
            values.append(labels[name])
        return tuple(values)

    def _get_or_create(self, key: tuple[str, ...]) -> M:
        with self._lock:
            metric = self._children.get(key)
            if metric is None:
                metric = self._builder(self.opts, list(key))
                self._children[key] = metric
            return metric

    def get_metric_with_label_values(self, vals: Sequence[str]) -> M:
        """Return the metric for these label values, creating it if needed.

        Values are given in the order of the descriptor's variable labels.
        Raises :class:`InconsistentCardinalityError` on a wrong count.
        """
        return self._get_or_create(self._key_from_values(vals))

    def get_metric_with(self, labels: Mapping[str, str]) -> M:
        """Return the metric for this label map, creating it if needed.

        Raises :class:`InconsistentCardinalityError` on a wrong count and
        :class:`MetricsError` when a label name is missing.
        """
        return self._get_or_create(self._key_from_labels(labels))

    def with_label_values(self, vals: Sequence[str]) -> M:
        """Shorthand for :meth:`get_metric_with_label_values`."""
        return self.get_metric_with_label_values(vals)

    def with_labels(self, labels: Mapping[str, str]) -> M:
        """Shorthand for :meth:`get_metric_with`."""
        return self.get_metric_with(labels)

    def remove_label_values(self, vals: Sequence[str]) -> None:
        """Remove the metric with these label values.

        Raises :class:`MetricsError` if no such metric exists.
        """
        key = self._key_from_values(vals)
        with self._lock:
            if self._children.pop(key, None) is None:
                raise MetricsError(f"missing label values {list(vals)!r}")

    def remove(self, labels: Mapping[str, str]) -> None:
        """Remove the metric with this label map.

        Raises :class:`MetricsError` if no such metric exists.
        """
        key = self._key_from_labels(labels)
        with self._lock:
            if self._children.pop(key, None) is None:
                raise MetricsError(f"missing labels {dict(labels)!r}")

    def reset(self) -> None:
        """Delete every metric in this vector."""
        with self._lock:
            self._children.clear()

    def desc(self) -> list[Desc]:
        return [self._desc]

    def collect(self) -> list[MetricFamily]:
        with self._lock:
            children = list(self._children.values())
        return [
            MetricFamily(
                name=self._desc.fq_name,
                help=self._desc.help,
                type=self.metric_type,
                metric=[child.metric() for child in children],
            )
        ]