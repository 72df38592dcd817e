# labelmetrics

A small metrics library for instrumenting Python programs. It has no
dependencies outside the standard library and provides:

- `labelmetrics.value`: metric descriptors (`Desc`), a thread-safe counter or
  gauge `Value`, and the exposition model (`MetricFamily`, `Metric`,
  `LabelPair`, `MetricType`);
- `labelmetrics.vec`: `MetricVec`, a collector of metrics that share a name
  and differ only in their label values;
- `labelmetrics.registry`: `Registry`, which collects metric families from
  registered collectors, merges them by name and returns them sorted;
- `labelmetrics.parser` and `labelmetrics.builder`: static label trees. You
  declare the label values you will use up front and get a tree of ready-made
  child metrics reached by attribute;
- `labelmetrics.timer`: a coarse millisecond clock.

## Installation

```
pip install labelmetrics
```

## Values and descriptors

A `Desc` holds a fully qualified name, help text, variable label names and
constant labels. An empty name or a repeated label name raises
`MetricsError`.

```python
from labelmetrics.value import Desc, Value, ValueType

desc = Desc("jobs_done", "Jobs finished.", ["queue"], {"host": "a"})
jobs = Value(desc, ValueType.COUNTER, 0, ["default"])
jobs.inc()
jobs.inc_by(4)
jobs.get()        # 5
jobs.collect()    # MetricFamily with one Metric, labels sorted by name
```

`Value` also has `set`, `dec` and `dec_by`. `make_label_pairs(desc, values)`
pairs label names with values, adds the constant labels and sorts them by
name; a wrong number of values raises `InconsistentCardinalityError`.

## Metric vectors

A `MetricVec` is built from a metric type, a builder called as
`builder(opts, label_values)` to create each child, and the options it
describes itself with (a `Desc`, or any object with a `describe()` method):

```python
from labelmetrics.value import Desc, MetricType, Value, ValueType
from labelmetrics.vec import MetricVec

desc = Desc("http_requests_total", "Number of HTTP requests.", ["code", "method"])
vec = MetricVec(
    MetricType.COUNTER,
    lambda opts, values: Value(opts, ValueType.COUNTER, 0, values),
    desc,
)

vec.with_label_values(["404", "POST"]).inc()
vec.with_labels({"code": "404", "method": "POST"}).inc()
```

`get_metric_with_label_values(vals)` and `get_metric_with(labels)` do the
same. A wrong number of labels raises `InconsistentCardinalityError`, and a
label name missing from the map raises `MetricsError`.
`remove_label_values(vals)` and `remove(labels)` drop one child (raising
`MetricsError` if it does not exist), and `reset()` drops them all.

## Registries

A `Registry` holds collectors, i.e. subclasses of `Collector` that implement
`desc()` and `collect()`; `MetricVec` is one.

- `register(collector)` adds a collector. It raises `AlreadyRegisteredError`
  if an equal collector or one of its descriptors is already registered, and
  `MetricsError` if a descriptor with the same name has different label names
  or help text, or a collector repeats a descriptor.
- `unregister(collector)` removes it again, raising `MetricsError` when it was
  not registered.
- `gather()` returns the metric families sorted by name, with the metrics in
  each family sorted by their label values. Families without metrics are
  left out and families of the same name are merged.

`Registry(prefix=None, labels=None)` may carry a name prefix, joined to each
family name with `_` (an empty prefix raises `MetricsError`), and common labels
appended to every metric it gathers.

A process-wide registry is returned by `default_registry()`, with the
module-level shortcuts `register(collector)`, `unregister(collector)` and
`gather()` in `labelmetrics.registry`.

## Static metrics

`make_static_metric(source)` parses declarations like these and returns a
dict of what they define, by name:

```
pub label_enum Methods {
    post,
    get,
    put,
    delete,
}

pub struct HttpRequests: Counter {
    "method" => Methods,
    "version" => {
        http1: "HTTP/1",
        http2: "HTTP/2",
    },
}
```

A value is either a bare name, whose label value is the name itself, or
`name: "value"`. A `label_enum` becomes a `LabelEnum` subclass whose members
report their label value through `get_str()` and `str()`. A `struct` becomes
a `StaticMetricType`. A label enum must be declared before a metric uses it,
and a `pub` metric may only use `pub` enums; otherwise `ParseError` is
raised. Malformed text raises `ParseError` with the line and column.

`StaticMetricType.from_vec(vec)` resolves every declared combination through
`vec.with_labels(...)` and returns a `StaticMetric` tree:

```python
from labelmetrics.builder import make_static_metric

defs = make_static_metric(source)
Methods = defs["Methods"]
requests = defs["HttpRequests"].from_vec(vec)   # vec labelled "method", "version"

requests.post.http1.inc()
requests.get(Methods.put).http2.inc()
requests.try_get("delete").try_get("HTTP/1").inc()
requests["get"].http1.inc()    # "get" is shadowed by the method
```

`get(member)` works only for labels declared with a label enum and raises
`TypeError` otherwise. `try_get(value)` looks up by label value and returns
`None` for a value that was not declared. The label order of the vector does
not have to match the order of the declaration.

`register_static_vec(metric_type, vec, registry=None)` registers the vector
(with the default registry when none is given) and builds the tree in one
step.

The helpers `is_local_metric`, `to_non_local_metric_type` and
`get_metric_vec_type` work on metric type names such as `LocalIntCounter`.

## Timing helpers

`labelmetrics.timer` offers `now_millis()` (milliseconds since a fixed point,
never going backwards), `recent_millis()` (the last value `now_millis`
returned), `duration_to_millis(dur)` (for a `timedelta` or a number of
seconds) and `ensure_updater()`, which starts one daemon thread that calls
`now_millis()` every 200 ms.

## What is not included

- There are no ready-made counter, gauge or histogram vector classes; a
  `MetricVec` is given a builder, for example one that creates `Value`s.
- There are no local (buffered) metrics. A static metric type whose name
  starts with `Local` calls `local()` on each child and `flush()` on the tree
  calls the children's `flush()`, so the vector's children must provide
  these; `flush()` on any other tree raises `TypeError`.
- There is no text or protobuf exposition format, no HTTP endpoint, no push
  client and no process metrics collector: `gather()` returns Python objects.