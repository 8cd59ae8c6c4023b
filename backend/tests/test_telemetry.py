from datetime import datetime, timedelta

import pytest

from conftest import NOW, ctx_for
from core.errors import InvalidInput, NotFound, Unauthorized
from models.log import SystemLog
from models.sensor import SensorReading, SENSOR_TYPE_MAX_LENGTH, UNIT_MAX_LENGTH
from services import telemetry
from services.telemetry import TelemetryStore, truncate, validate_reading


@pytest.fixture
def store(db):
    return TelemetryStore(db)


def test_truncate_buckets():
    ts = datetime(2026, 3, 17, 14, 42, 31)
    assert truncate(ts, "minute") == datetime(2026, 3, 17, 14, 42)
    assert truncate(ts, "hour") == datetime(2026, 3, 17, 14)
    assert truncate(ts, "day") == datetime(2026, 3, 17)
    assert truncate(ts, "month") == datetime(2026, 3, 1)
    with pytest.raises(InvalidInput):
        truncate(ts, "week")


def test_record_stamps_server_time_and_keeps_metadata(store, alice, make_device):
    device = make_device(alice)
    reading = store.record(device.id, "temperature", "21.5", ctx_for(alice), unit="C", metadata={"probe": 2})
    assert reading.sensor_value == 21.5
    assert reading.timestamp == NOW
    assert reading.meta == {"probe": 2}


@pytest.mark.parametrize("value", [None, True, "warm", float("nan"), float("inf"), 10**400])
def test_record_rejects_bad_values(store, alice, make_device, value):
    device = make_device(alice)
    with pytest.raises(InvalidInput):
        store.record(device.id, "temperature", value, ctx_for(alice))


def test_record_on_foreign_device_is_unauthorized(store, alice, bob, make_device):
    device = make_device(alice)
    with pytest.raises(Unauthorized):
        store.record(device.id, "temperature", 1, ctx_for(bob))


def test_batch_is_all_or_nothing_and_reports_index(store, db, alice, bob, make_device):
    mine = make_device(alice)
    theirs = make_device(bob)
    items = [
        {"device_id": mine.id, "sensor_type": "temperature", "sensor_value": 20},
        {"device_id": mine.id, "sensor_type": "humidity", "sensor_value": 40},
        {"device_id": mine.id, "sensor_type": "temperature"},
    ]
    with pytest.raises(InvalidInput) as exc_info:
        store.record_batch(items, ctx_for(alice))
    assert exc_info.value.index == 2

    items[2] = {"device_id": theirs.id, "sensor_type": "temperature", "sensor_value": 1}
    with pytest.raises(Unauthorized) as exc_info:
        store.record_batch(items, ctx_for(alice))
    assert exc_info.value.index == 2

    assert db.query(SensorReading).count() == 0


def test_batch_writes_every_item(store, db, alice, make_device):
    d1 = make_device(alice)
    d2 = make_device(alice)
    items = [
        {"device_id": d1.id, "sensor_type": "temperature", "sensor_value": 20.5, "unit": "C"},
        {"device_id": str(d2.id), "sensor_type": "humidity", "sensor_value": 40, "metadata": {"raw": 812}},
        {"device_id": d1.id, "sensor_type": "temperature", "sensor_value": 21},
    ]
    assert store.record_batch(items, ctx_for(alice)) == 3

    rows = db.query(SensorReading).order_by(SensorReading.id).all()
    assert [r.device_id for r in rows] == [d1.id, d2.id, d1.id]
    assert all(r.timestamp == NOW for r in rows)
    assert rows[1].meta == {"raw": 812}
    entry = db.query(SystemLog).filter(SystemLog.action == "sensor_batch").one()
    assert entry.details["count"] == 3


@pytest.mark.parametrize("items", [[], None, {"device_id": 1}])
def test_batch_must_be_a_non_empty_list(store, alice, items):
    with pytest.raises(InvalidInput):
        store.record_batch(items, ctx_for(alice))


def test_query_filters_and_orders_newest_first(store, alice, make_device):
    device = make_device(alice)
    for minutes, kind in [(0, "temperature"), (10, "humidity"), (20, "temperature"), (30, "temperature")]:
        store.record(device.id, kind, minutes, ctx_for(alice, NOW + timedelta(minutes=minutes)))

    rows = store.query(device.id, "temperature", limit=10)
    assert [r.sensor_value for r in rows] == [30, 20, 0]

    windowed = store.query(
        device.id, "temperature", limit=10,
        from_time=NOW + timedelta(minutes=5), to_time=NOW + timedelta(minutes=20),
    )
    assert [r.sensor_value for r in windowed] == [20]
    assert len(store.query(device.id, limit=2)) == 2


def test_latest(store, alice, bob, make_device):
    device = make_device(alice)
    store.record(device.id, "temperature", 1, ctx_for(alice, NOW))
    store.record(device.id, "temperature", 2, ctx_for(alice, NOW + timedelta(minutes=1)))

    assert store.latest(device.id, "temperature", alice.id).sensor_value == 2
    with pytest.raises(NotFound):
        store.latest(device.id, "pressure", alice.id)
    with pytest.raises(NotFound):
        store.latest(device.id, "temperature", bob.id)


def test_hourly_aggregate_is_sparse_and_ascending(store, alice, make_device):
    device = make_device(alice)
    base = datetime(2026, 1, 15)
    for hh, mm, value in [(10, 5, 10.0), (10, 47, 20.0), (11, 2, 30.0), (14, 0, 5.0)]:
        store.record(device.id, "temperature", value, ctx_for(alice, base.replace(hour=hh, minute=mm)))
    store.record(device.id, "humidity", 99, ctx_for(alice, base.replace(hour=10, minute=30)))

    buckets = store.aggregate(device.id, "temperature", "hour", to_time=base.replace(hour=12))

    assert buckets == [
        {"period": base.replace(hour=10), "avg_value": 15.0, "min_value": 10.0, "max_value": 20.0, "count": 2},
        {"period": base.replace(hour=11), "avg_value": 30.0, "min_value": 30.0, "max_value": 30.0, "count": 1},
    ]


def test_aggregate_validates_arguments(store, alice, make_device):
    device = make_device(alice)
    with pytest.raises(InvalidInput):
        store.aggregate(device.id, "temperature", "fortnight")
    with pytest.raises(InvalidInput):
        store.aggregate(device.id, None, "hour")
    assert store.aggregate(device.id, "temperature", "day") == []


def test_statistics_and_sensor_types(store, alice, make_device):
    device = make_device(alice)
    store.record(device.id, "temperature", 10, ctx_for(alice, NOW - timedelta(days=1)), unit="C")
    store.record(device.id, "temperature", 30, ctx_for(alice), unit="C")
    store.record(device.id, "humidity", 50, ctx_for(alice), unit="%")
    store.record(device.id, "temperature", -40, ctx_for(alice, NOW - timedelta(days=20)), unit="C")

    stats = store.statistics(device.id, window_days=7, now=NOW)
    assert [s["sensor_type"] for s in stats] == ["humidity", "temperature"]
    temperature = stats[1]
    assert temperature["total_readings"] == 2
    assert temperature["avg_value"] == 20
    assert temperature["min_value"] == 10
    assert temperature["last_reading"] == NOW

    assert store.sensor_types(device.id) == [
        {"sensor_type": "humidity", "unit": "%"},
        {"sensor_type": "temperature", "unit": "C"},
    ]


def test_list_for_user_spans_only_owned_devices(store, alice, bob, make_device):
    mine = make_device(alice, "balcony")
    theirs = make_device(bob)
    store.record(mine.id, "temperature", 1, ctx_for(alice))
    store.record(theirs.id, "temperature", 2, ctx_for(bob))

    rows = store.list_for_user(alice.id)
    assert [r.sensor_value for r in rows] == [1]
    assert rows[0].device_name == "balcony"


def test_purge_older_than(store, db, alice, make_device):
    device = make_device(alice)
    store.record(device.id, "temperature", 1, ctx_for(alice, NOW - timedelta(days=100)))
    store.record(device.id, "temperature", 2, ctx_for(alice))

    assert store.purge_older_than(90, ctx_for(alice)) == 1
    assert [r.sensor_value for r in db.query(SensorReading).all()] == [2]


def test_batch_reports_index_of_value_too_large_for_a_float(store, db, alice, make_device):
    device = make_device(alice)
    items = [
        {"device_id": device.id, "sensor_type": "temperature", "sensor_value": 20},
        {"device_id": device.id, "sensor_type": "temperature", "sensor_value": 10**400},
    ]
    with pytest.raises(InvalidInput) as exc_info:
        store.record_batch(items, ctx_for(alice))
    assert exc_info.value.index == 1
    assert db.query(SensorReading).count() == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"sensor_type": "t" * (SENSOR_TYPE_MAX_LENGTH + 1)},
        {"unit": "u" * (UNIT_MAX_LENGTH + 1)},
    ],
)
def test_batch_rejects_over_long_fields_before_writing(store, db, alice, make_device, overrides):
    device = make_device(alice)
    bad = {"device_id": device.id, "sensor_type": "temperature", "sensor_value": 1, **overrides}
    items = [bad, {"device_id": device.id, "sensor_type": "temperature", "sensor_value": 2}]
    with pytest.raises(InvalidInput) as exc_info:
        store.record_batch(items, ctx_for(alice))
    assert exc_info.value.index == 0
    assert db.query(SensorReading).count() == 0


def test_longest_allowed_sensor_type_is_accepted(store, alice, make_device):
    device = make_device(alice)
    reading = store.record(device.id, "t" * SENSOR_TYPE_MAX_LENGTH, 1, ctx_for(alice), unit="u" * UNIT_MAX_LENGTH)
    assert len(reading.sensor_type) == SENSOR_TYPE_MAX_LENGTH


@pytest.mark.parametrize("device_id", [1.7, float("inf"), "1.7", True])
def test_device_id_must_be_integral(device_id):
    with pytest.raises(InvalidInput):
        validate_reading({"device_id": device_id, "sensor_type": "temperature", "sensor_value": 1})


def test_whole_float_device_id_is_accepted():
    assert validate_reading({"device_id": 3.0, "sensor_type": "t", "sensor_value": 1})["device_id"] == 3


def test_aggregate_streams_across_chunks(store, alice, make_device, monkeypatch):
    monkeypatch.setattr(telemetry, "AGGREGATE_CHUNK_SIZE", 2)
    device = make_device(alice)
    base = datetime(2026, 1, 15)
    for minute, value in [(0, 1.0), (10, 2.0), (20, 3.0), (30, 4.0), (40, 5.0)]:
        store.record(device.id, "temperature", value, ctx_for(alice, base.replace(hour=9, minute=minute)))
    store.record(device.id, "temperature", 9.0, ctx_for(alice, base.replace(hour=10)))

    buckets = store.aggregate(device.id, "temperature", "hour")

    assert [(b["period"].hour, b["count"], b["avg_value"]) for b in buckets] == [(9, 5, 3.0), (10, 1, 9.0)]
    assert buckets[0]["min_value"] == 1.0
    assert buckets[0]["max_value"] == 5.0
