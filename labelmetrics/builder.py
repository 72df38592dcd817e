"""Static metrics: label enums and nested metric trees built from a metric vector.

A definition such as::

    pub label_enum Methods { post, get, }
    pub struct Requests: Counter {
        "method" => Methods,
        "product" => { foo, bar: "bar_name" },
    }

becomes a ``Methods`` enum and a ``Requests`` :class:`StaticMetricType`.
Calling :meth:`StaticMetricType.from_vec` with a metric vector resolves
every label combination once, so that ``requests.post.foo`` is the ready
child metric for ``method="post", product="foo"``.
"""

from __future__ import annotations

import enum
from typing import Any, Iterator, Mapping

from .parser import LabelEnumDef, MetricDef, ParseError, ValueDef, parse
from .registry import Registry, default_registry
from .value import MetricsError

_LOCAL_PREFIX = "Local"


def is_local_metric(metric_type: str) -> bool:
    """Return whether a metric type name denotes a thread-local metric."""
    return metric_type.startswith(_LOCAL_PREFIX)


def to_non_local_metric_type(metric_type: str) -> str:
    """Strip the ``Local`` prefix from a metric type name, if present."""
    if metric_type.startswith(_LOCAL_PREFIX):
        return metric_type[len(_LOCAL_PREFIX):]
    return metric_type


def get_metric_vec_type(metric_type: str) -> str:
    """Return the name of the vector type that holds metrics of this type."""
    return f"{metric_type}Vec"


class LabelEnum(enum.Enum):
    """Base of generated label enums; each member's value is its label string."""

    def get_str(self) -> str:
        """Return the label value this member stands for."""
        return self.value

    def __str__(self) -> str:
        return self.get_str()

    def __repr__(self) -> str:
        return self.get_str()

    def __format__(self, spec: str) -> str:
        return format(self.get_str(), spec)


def build_label_enum(definition: LabelEnumDef) -> type[LabelEnum]:
    """Create the enum class for a label enum definition."""
    cls = LabelEnum(definition.name, [(d.name, d.value) for d in definition.definitions])
    cls._definition = definition
    return cls


def _enum_value_defs(enum_cls: type[LabelEnum]) -> tuple[ValueDef, ...]:
    return tuple(ValueDef(name, member.value) for name, member in enum_cls.__members__.items())


class StaticMetric:
    """One level of a static metric tree.

    Children are reached as attributes named after the value definitions
    (``metric.post``), or by subscription (``metric["post"]``) when a name
    is shadowed by a method such as ``get``.
    """

    def __init__(
        self,
        label_key: str,
        children: dict[str, Any],
        by_value: dict[str, Any],
        label_enum: type[LabelEnum] | None,
        local: bool,
    ) -> None:
        self.label_key = label_key
        self._children = children
        self._by_value = by_value
        self._enum = label_enum
        self._local = local

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        children = self.__dict__.get("_children", {})
        try:
            return children[name]
        except KeyError:
            raise AttributeError(
                f"{type(self).__name__} for label {self.__dict__.get('label_key')!r} "
                f"has no value {name!r}"
            ) from None

    def __getitem__(self, name: str) -> Any:
        return self._children[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._children)

    def __len__(self) -> int:
        return len(self._children)

    def __dir__(self) -> list[str]:
        return sorted(set(super().__dir__()) | set(self._children))

    def __repr__(self) -> str:
        return f"StaticMetric({self.label_key!r}, {list(self._children)})"

    def get(self, value: LabelEnum) -> Any:
        """Return the child for a member of this label's enum.

        Raises :class:`TypeError` if the label is not defined by a label enum
        or ``value`` is not a member of it.
        """
        if self._enum is None:
            raise TypeError(f"label {self.label_key!r} is not defined by a label enum")
        if not isinstance(value, self._enum):
            raise TypeError(f"expected a member of {self._enum.__name__}, got {value!r}")
        return self._children[value.name]

    def try_get(self, value: str) -> Any | None:
        """Return the child for a label value string, or ``None`` if unknown."""
        return self._by_value.get(value)

    def flush(self) -> None:
        """Flush every local child metric.

        Raises :class:`TypeError` if the tree does not hold local metrics.
        """
        if not self._local:
            raise TypeError("only static metrics of a local metric type can be flushed")
        for child in self._children.values():
            child.flush()


class StaticMetricType:
    """A checked static metric definition that builds trees from vectors."""

    def __init__(self, definition: MetricDef, enums: Mapping[str, type[LabelEnum]]) -> None:
        if not definition.labels:
            raise ParseError(f"metric `{definition.struct_name}` has no labels")
        enum_defs = {name: LabelEnumDef(name, _enum_value_defs(cls)) for name, cls in enums.items()}
        levels = []
        for label in definition.labels:
            enum_cls = None
            if label.enum_name is not None:
                enum_cls = enums.get(label.enum_name)
                if enum_cls is None:
                    raise ParseError(f"Label enum `{label.enum_name}` is undefined.")
                if definition.visibility == "pub":
                    enum_def = getattr(enum_cls, "_definition", None)
                    if enum_def is None or enum_def.visibility != "pub":
                        raise ParseError(
                            f"Label enum `{label.enum_name}` does not have enough visibility "
                            f"because it is used in metric `{definition.struct_name}` which "
                            "has `pub` visibility."
                        )
            defs = label.value_defs(enum_defs)
            names = [d.name for d in defs]
            if len(set(names)) != len(names):
                raise ParseError(
                    f"duplicate value names for label {label.label_key!r} "
                    f"in metric `{definition.struct_name}`"
                )
            levels.append((label.label_key, defs, enum_cls))
        self.definition = definition
        self._levels = tuple(levels)

    @property
    def name(self) -> str:
        return self.definition.struct_name

    @property
    def metric_type(self) -> str:
        return self.definition.metric_type

    @property
    def label_keys(self) -> tuple[str, ...]:
        return tuple(key for key, _, _ in self._levels)

    def __repr__(self) -> str:
        return f"StaticMetricType({self.name!r}: {self.metric_type})"

    def from_vec(self, vec) -> StaticMetric:
        """Resolve every label combination of ``vec`` into a static metric tree.

        Errors from the vector, such as label names that do not match, are
        raised unchanged.
        """
        return self._build(vec, 0, {})

    def _build(self, vec, index: int, prefix: dict[str, str]) -> StaticMetric:
        label_key, defs, enum_cls = self._levels[index]
        local = is_local_metric(self.metric_type)
        is_last = index == len(self._levels) - 1
        children: dict[str, Any] = {}
        by_value: dict[str, Any] = {}
        for value_def in defs:
            labels = {**prefix, label_key: value_def.value}
            if is_last:
                child = vec.with_labels(labels)
                if local:
                    child = child.local()
            else:
                child = self._build(vec, index + 1, labels)
            children[value_def.name] = child
            by_value.setdefault(value_def.value, child)
        return StaticMetric(label_key, children, by_value, enum_cls, local)


def make_static_metric(source: str) -> dict[str, type[LabelEnum] | StaticMetricType]:
    """Parse definitions and return the enums and metric types they define, by name.

    A label enum must be defined before any metric that refers to it.
    """
    enums: dict[str, type[LabelEnum]] = {}
    result: dict[str, type[LabelEnum] | StaticMetricType] = {}
    for item in parse(source):
        if isinstance(item, LabelEnumDef):
            enum_cls = build_label_enum(item)
            enums[item.name] = enum_cls
            result[item.name] = enum_cls
        else:
            result[item.struct_name] = StaticMetricType(item, dict(enums))
    return result


def register_static_vec(metric_type: StaticMetricType, vec, registry: Registry | None = None) -> StaticMetric:
    """Register ``vec`` (with the default registry if none is given) and build its tree."""
    if not isinstance(metric_type, StaticMetricType):
        raise MetricsError(f"expected a static metric type, got {metric_type!r}")
    (registry if registry is not None else default_registry()).register(vec)
    return metric_type.from_vec(vec)