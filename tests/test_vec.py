import pytest

from labelmetrics.registry import Registry
from labelmetrics.value import (
    Desc,
    InconsistentCardinalityError,
    MetricsError,
    MetricType,
    Value,
    ValueType,
)
from labelmetrics.vec import MetricVec


def _counter_vec(name, labels):
    desc = Desc(name, "test counter vec help", labels)
    return MetricVec(
        MetricType.COUNTER,
        lambda opts, vals: Value(opts, ValueType.COUNTER, 0.0, vals),
        desc,
    )


def _gauge_vec(name, labels):
    desc = Desc(name, "test gauge vec help", labels)
    return MetricVec(
        MetricType.GAUGE,
        lambda opts, vals: Value(opts, ValueType.GAUGE, 0.0, vals),
        desc,
    )


def test_counter_vec_with_labels():
    vec = _counter_vec("test_couter_vec", ["l1", "l2"])
    labels = {"l1": "v1", "l2": "v2"}
    with pytest.raises(MetricsError):
        vec.remove(labels)

    vec.with_labels(labels).inc()
    vec.remove(labels)
    with pytest.raises(MetricsError):
        vec.remove(labels)

    labels2 = {"l1": "v2", "l2": "v1"}
    vec.with_labels(labels).inc()
    with pytest.raises(MetricsError):
        vec.remove(labels2)

    vec.with_labels(labels).inc()
    assert vec.with_labels(labels).get() == 2.0

    with pytest.raises(InconsistentCardinalityError):
        vec.remove({"l1": "v1"})


def test_counter_vec_with_label_values():
    vec = _counter_vec("test_vec", ["l1", "l2"])
    with pytest.raises(MetricsError):
        vec.remove_label_values(["v1", "v2"])
    vec.with_label_values(["v1", "v2"]).inc()
    vec.remove_label_values(["v1", "v2"])

    vec.with_label_values(["v1", "v2"]).inc()
    with pytest.raises(InconsistentCardinalityError):
        vec.remove_label_values(["v1"])
    with pytest.raises(MetricsError):
        vec.remove_label_values(["v1", "v3"])


def test_gauge_vec_with_labels():
    vec = _gauge_vec("test_gauge_vec", ["l1", "l2"])
    labels = {"l1": "v1", "l2": "v2"}
    with pytest.raises(MetricsError):
        vec.remove(labels)

    vec.with_labels(labels).inc()
    vec.with_labels(labels).dec()
    vec.with_labels(labels).inc_by(42.0)
    vec.with_labels(labels).dec_by(42.0)
    assert vec.with_labels(labels).get() == 0.0
    vec.with_labels(labels).set(42.0)
    assert vec.with_labels(labels).get() == 42.0

    vec.remove(labels)
    with pytest.raises(MetricsError):
        vec.remove(labels)


def test_gauge_vec_with_label_values():
    vec = _gauge_vec("test_gauge_vec", ["l1", "l2"])
    with pytest.raises(MetricsError):
        vec.remove_label_values(["v1", "v2"])
    vec.with_label_values(["v1", "v2"]).inc()
    vec.remove_label_values(["v1", "v2"])

    vec.with_label_values(["v1", "v2"]).inc()
    vec.with_label_values(["v1", "v2"]).dec()
    vec.with_label_values(["v1", "v2"]).set(42.0)
    assert vec.with_label_values(["v1", "v2"]).get() == 42.0

    with pytest.raises(InconsistentCardinalityError):
        vec.remove_label_values(["v1"])
    with pytest.raises(MetricsError):
        vec.remove_label_values(["v1", "v3"])


def test_vec_get_metric_with():
    vec = _counter_vec("test_vec", ["b", "c", "a"])
    labels = {"a": "b", "b": "c", "c": "a"}
    counter = vec.get_metric_with(labels)
    pairs = counter.metric().label
    assert len(pairs) == len(labels)
    for pair in pairs:
        assert pair.value == labels[pair.name]


def test_map_and_values_reach_same_metric():
    vec = _counter_vec("test_vec", ["b", "c", "a"])
    by_map = vec.get_metric_with({"a": "1", "b": "2", "c": "3"})
    by_values = vec.get_metric_with_label_values(["2", "3", "1"])
    assert by_map is by_values


def test_missing_label_name_in_map():
    vec = _counter_vec("test_vec", ["l1", "l2"])
    with pytest.raises(MetricsError, match="l2"):
        vec.get_metric_with({"l1": "v1", "other": "v2"})


def test_cardinality_error_details():
    vec = _counter_vec("test_vec", ["l1", "l2"])
    with pytest.raises(InconsistentCardinalityError) as info:
        vec.with_label_values(["only"])
    assert info.value.expect == 2
    assert info.value.got == 1


def test_collect_and_reset():
    vec = _counter_vec("test_vec", ["l1"])
    vec.with_label_values(["x"]).inc()
    vec.with_label_values(["y"]).inc_by(3.0)
    [family] = vec.collect()
    assert family.name == "test_vec"
    assert family.type is MetricType.COUNTER
    assert sorted(m.counter for m in family.metric) == [1.0, 3.0]

    vec.reset()
    assert vec.collect()[0].metric == []
    assert vec.with_label_values(["x"]).get() == 0.0


def test_desc_is_the_given_descriptor():
    desc = Desc("test_vec", "help", ["l1"])
    vec = MetricVec(
        MetricType.GAUGE,
        lambda opts, vals: Value(opts, ValueType.GAUGE, 0.0, vals),
        desc,
    )
    assert vec.desc() == [desc]


def test_registry_prunes_empty_vec():
    vec = _counter_vec("test_vec", ["a", "b"])
    registry = Registry()
    registry.register(vec)
    assert registry.gather() == []
    vec.with_label_values(["1", "2"]).inc()
    families = registry.gather()
    assert [f.name for f in families] == ["test_vec"]
    assert families[0].metric[0].counter == 1.0