"""Metric descriptors, simple counter and gauge values, and the exposition model."""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

_FNV_OFFSET = 0xCBF29CE484222325
_FNV_PRIME = 0x100000001B3
_MASK64 = (1 << 64) - 1
_SEPARATOR = b"\xff"


def _fnv1a64(parts: Iterable[str]) -> int:
    h = _FNV_OFFSET
    for part in parts:
        for byte in part.encode("utf-8") + _SEPARATOR:
            h ^= byte
            h = (h * _FNV_PRIME) & _MASK64
    return h


class MetricsError(Exception):
    """Base error for metric definition, registration and lookup problems."""


class AlreadyRegisteredError(MetricsError):
    """A collector with the same descriptors is already registered."""

    def __init__(self, message: str = "duplicate metrics collector registration attempted"):
        super().__init__(message)


class InconsistentCardinalityError(MetricsError):
    """The number of label values does not match the number of label names."""

    def __init__(self, expect: int, got: int):
        self.expect = expect
        self.got = got
        super().__init__(
            f"inconsistent label cardinality: expect {expect} label values, but got {got}"
        )


class MetricType(enum.Enum):
    COUNTER = "counter"
    GAUGE = "gauge"
    SUMMARY = "summary"
    UNTYPED = "untyped"
    HISTOGRAM = "histogram"


class ValueType(enum.Enum):
    """The kinds of metric that hold a single value."""

    COUNTER = "counter"
    GAUGE = "gauge"

    def metric_type(self) -> MetricType:
        """Return the matching exposition metric type."""
        return MetricType.COUNTER if self is ValueType.COUNTER else MetricType.GAUGE


@dataclass(frozen=True, order=True)
class LabelPair:
    name: str
    value: str


@dataclass
class Metric:
    """One sample: its labels and either a counter or a gauge value."""

    label: list[LabelPair] = field(default_factory=list)
    counter: float | None = None
    gauge: float | None = None
    timestamp_ms: int | None = None


@dataclass
class MetricFamily:
    """All samples that share a name, help text and type."""

    name: str
    help: str
    type: MetricType
    metric: list[Metric] = field(default_factory=list)


@dataclass(frozen=True)
class Desc:
    """Immutable description of a metric: name, help and label names.

    ``id`` identifies the name together with the constant label values;
    ``dim_hash`` identifies the help text together with all label names.
    """

    fq_name: str
    help: str
    variable_labels: Sequence[str] = ()
    const_labels: Mapping[str, str] = field(default_factory=dict)
    const_label_pairs: tuple[LabelPair, ...] = field(init=False, repr=False)
    id: int = field(init=False, repr=False)
    dim_hash: int = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.fq_name:
            raise MetricsError("empty fully-qualified metric name")
        variable = tuple(self.variable_labels)
        const = dict(self.const_labels)
        names = list(variable) + list(const)
        if len(set(names)) != len(names):
            raise MetricsError(f"duplicate label names in {self.fq_name!r}: {names}")
        pairs = tuple(sorted(LabelPair(k, v) for k, v in const.items()))
        object.__setattr__(self, "variable_labels", variable)
        object.__setattr__(self, "const_labels", const)
        object.__setattr__(self, "const_label_pairs", pairs)
        object.__setattr__(
            self, "id", _fnv1a64([self.fq_name, *(p.value for p in pairs)])
        )
        object.__setattr__(self, "dim_hash", _fnv1a64([self.help, *sorted(names)]))


def _describe(describer) -> Desc:
    if isinstance(describer, Desc):
        return describer
    return describer.describe()


class Value:
    """A thread-safe counter or gauge value with fixed labels."""

    def __init__(self, describer, val_type: ValueType, val=0, label_values: Sequence[str] = ()):
        self.desc = _describe(describer)
        self.val_type = ValueType(val_type)
        self.label_pairs = make_label_pairs(self.desc, label_values)
        self._val = val
        self._lock = threading.Lock()

    def get(self):
        with self._lock:
            return self._val

    def set(self, val) -> None:
        with self._lock:
            self._val = val

    def inc_by(self, val) -> None:
        with self._lock:
            self._val += val

    def inc(self) -> None:
        self.inc_by(1)

    def dec(self) -> None:
        self.dec_by(1)

    def dec_by(self, val) -> None:
        with self._lock:
            self._val -= val

    def metric(self) -> Metric:
        """Return the current sample with this value's labels."""
        current = float(self.get())
        if self.val_type is ValueType.COUNTER:
            return Metric(label=list(self.label_pairs), counter=current)
        return Metric(label=list(self.label_pairs), gauge=current)

    def collect(self) -> MetricFamily:
        """Return a family holding just this value's sample."""
        return MetricFamily(
            name=self.desc.fq_name,
            help=self.desc.help,
            type=self.val_type.metric_type(),
            metric=[self.metric()],
        )

    def __repr__(self) -> str:
        return f"Value({self.desc.fq_name!r}, {self.val_type.name}, {self.get()!r})"


def make_label_pairs(desc: Desc, label_values: Sequence[str]) -> list[LabelPair]:
    """Pair variable label names with values, add constant labels, sort by name."""
    label_values = list(label_values)
    if len(desc.variable_labels) != len(label_values):
        raise InconsistentCardinalityError(len(desc.variable_labels), len(label_values))
    if not desc.variable_labels:
        return list(desc.const_label_pairs)
    pairs = [LabelPair(name, value) for name, value in zip(desc.variable_labels, label_values)]
    pairs.extend(desc.const_label_pairs)
    pairs.sort()
    return pairs