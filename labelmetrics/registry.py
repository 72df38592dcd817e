"""Registration of collectors and gathering of their metric families."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Mapping

from .value import (
    AlreadyRegisteredError,
    Desc,
    LabelPair,
    Metric,
    MetricFamily,
    MetricsError,
)

_MASK64 = (1 << 64) - 1


class Collector(ABC):
    """Something that describes its metrics and produces samples on demand."""

    @abstractmethod
    def desc(self) -> list[Desc]:
        """Return the descriptors of every metric this collector produces."""

    @abstractmethod
    def collect(self) -> list[MetricFamily]:
        """Return the current samples, grouped into metric families."""


def _metric_sort_key(metric: Metric) -> tuple:
    # Label count first, so inconsistent label sets still sort reproducibly;
    # then label values in order; then the timestamp.
    return (
        len(metric.label),
        tuple(pair.value for pair in metric.label),
        metric.timestamp_ms or 0,
    )


class Registry:
    """Holds collectors, checks their consistency and gathers their metrics.

    An optional ``prefix`` is prepended (joined by ``_``) to every gathered
    family name, and optional ``labels`` are appended to every sample.
    """

    def __init__(
        self,
        prefix: str | None = None,
        labels: Mapping[str, str] | None = None,
    ) -> None:
        if prefix is not None and not prefix:
            raise MetricsError("empty prefix namespace")
        self.prefix = prefix
        self.labels = dict(labels) if labels is not None else None
        self._lock = threading.RLock()
        self._collectors_by_id: dict[int, Collector] = {}
        self._dim_hashes_by_name: dict[str, int] = {}
        self._desc_ids: set[int] = set()

    def __repr__(self) -> str:
        with self._lock:
            return f"Registry ({len(self._collectors_by_id)} collectors)"

    def register(self, collector: Collector) -> None:
        """Add a collector.

        Raises :class:`AlreadyRegisteredError` if any of its descriptors, or
        the collector as a whole, is already registered, and
        :class:`MetricsError` if its descriptors are inconsistent with those
        already known or repeat one another.
        """
        with self._lock:
            desc_id_set: set[int] = set()
            collector_id = 0
            for desc in collector.desc():
                if desc.id in self._desc_ids:
                    raise AlreadyRegisteredError()

                known_hash = self._dim_hashes_by_name.get(desc.fq_name)
                if known_hash is not None and known_hash != desc.dim_hash:
                    raise MetricsError(
                        "a previously registered descriptor with the same "
                        f"fully-qualified name as {desc!r} has different label "
                        "names or a different help string"
                    )
                self._dim_hashes_by_name[desc.fq_name] = desc.dim_hash

                if desc.id in desc_id_set:
                    raise MetricsError(
                        "a duplicate descriptor within the same collector the "
                        f"same fully-qualified name: {desc.fq_name!r}"
                    )
                desc_id_set.add(desc.id)
                collector_id = (collector_id + desc.id) & _MASK64

            if collector_id in self._collectors_by_id:
                raise AlreadyRegisteredError()
            self._desc_ids.update(desc_id_set)
            self._collectors_by_id[collector_id] = collector

    def unregister(self, collector: Collector) -> None:
        """Remove the registered collector whose descriptors equal this one's.

        Raises :class:`MetricsError` if no such collector is registered.
        """
        with self._lock:
            descs = collector.desc()
            id_set: list[int] = []
            collector_id = 0
            for desc in descs:
                if desc.id not in id_set:
                    id_set.append(desc.id)
                    collector_id = (collector_id + desc.id) & _MASK64

            if self._collectors_by_id.pop(collector_id, None) is None:
                raise MetricsError(f"collector {descs!r} is not registered")
            self._desc_ids.difference_update(id_set)
            # Dimension hashes stay: they must be consistent for the whole
            # lifetime of the program.

    def gather(self) -> list[MetricFamily]:
        """Collect from every collector and return families sorted by name.

        Families without samples are dropped, families with the same name are
        merged, and samples within a family are sorted by their label values.
        """
        with self._lock:
            collectors = list(self._collectors_by_id.values())
            prefix = self.prefix
            common = (
                [LabelPair(k, v) for k, v in self.labels.items()]
                if self.labels is not None
                else None
            )

        by_name: dict[str, MetricFamily] = {}
        for collector in collectors:
            for family in collector.collect():
                if not family.metric:
                    continue
                existing = by_name.get(family.name)
                if existing is None:
                    by_name[family.name] = MetricFamily(
                        name=family.name,
                        help=family.help,
                        type=family.type,
                        metric=list(family.metric),
                    )
                else:
                    existing.metric.extend(family.metric)

        result = []
        for name in sorted(by_name):
            family = by_name[name]
            family.metric.sort(key=_metric_sort_key)
            if prefix is not None:
                family.name = f"{prefix}_{family.name}"
            if common is not None:
                family.metric = [
                    replace(metric, label=list(metric.label) + common)
                    for metric in family.metric
                ]
            result.append(family)
        return result


_DEFAULT_REGISTRY = Registry()


def default_registry() -> Registry:
    """Return the process-wide default registry."""
    return _DEFAULT_REGISTRY


def register(collector: Collector) -> None:
    """Register a collector with the default registry."""
    _DEFAULT_REGISTRY.register(collector)


def unregister(collector: Collector) -> None:
    """Unregister a collector from the default registry."""
    _DEFAULT_REGISTRY.unregister(collector)


def gather() -> list[MetricFamily]:
    """Gather every metric family of the default registry."""
    return _DEFAULT_REGISTRY.gather()