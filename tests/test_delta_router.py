from datetime import datetime, timezone

import numpy as np
import pytest

from signalk_writer.config import PipelineConfig
from signalk_writer.data_layer.batch_flusher import BatchFlusher
from signalk_writer.data_layer.delta import Delta, PathValue, Update
from signalk_writer.data_layer.delta_router import DeltaRouter

SELF_ID = "urn:mrn:imo:mmsi:230099999"
SELF_CONTEXT = f"vessels.{SELF_ID}"


class RecordingSink:
    def __init__(self):
        self.batches = []

    async def write_batch(self, points):
        self.batches.append(list(points))


def make_router():
    config = PipelineConfig(self_id=SELF_ID)
    flusher = BatchFlusher(RecordingSink(), config)
    return DeltaRouter(flusher, config), flusher


def delta(values, context=SELF_CONTEXT, timestamp="2024-06-01T12:00:00.000Z"):
    return Delta(
        context=context,
        updates=[Update(timestamp=timestamp, values=[PathValue(p, v) for p, v in values])]
    )


def test_route_appends_scalar_points():
    router, flusher = make_router()
    points = router.route(delta([
        ("navigation.speedOverGround", 3.2),
        ("navigation.state", "sailing"),
        ("environment.depth.belowKeel", 7.5),
    ]))

    assert [p.fields for p in points] == [
        {"navigationSpeedOverGround": 3.2},
        {"environmentDepthBelowKeel": 7.5},
    ]
    assert flusher.pending == points
    expected_ts = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert all(p.timestamp == expected_ts for p in points)
    assert all(p.measurement == "signalk" for p in points)
    assert router.current_timestamp == expected_ts


def test_route_accepts_missing_context():
    router, flusher = make_router()
    router.route(delta([("navigation.speedOverGround", 3.2)], context=None))
    assert len(flusher.pending) == 1


def test_route_ignores_other_vessels():
    router, flusher = make_router()
    router.route(delta([
        ("environment.wind.angleApparent", 0.0),
        ("environment.wind.speedApparent", 10.0),
        ("navigation.speedOverGround", 5.0),
        ("navigation.courseOverGroundTrue", 0.0),
    ], context="vessels.urn:mrn:imo:mmsi:111111111"))

    assert flusher.pending == []
    assert not any(v is not None for v in router.true_wind.latest.values())
    assert router.current_timestamp is None
    assert router.statistics["ignored"] == 1


def test_route_puts_true_wind_ahead_of_completing_value():
    router, flusher = make_router()
    points = router.route(delta([
        ("environment.wind.angleApparent", 0.0),
        ("environment.wind.speedApparent", 10.0),
        ("navigation.speedOverGround", 5.0),
        ("navigation.courseOverGroundTrue", 0.0),
    ]))

    assert len(points) == 5
    wind = points[3]
    assert points[4].fields == {"navigationCourseOverGroundTrue": 0.0}
    assert set(wind.fields) == {"environmentWindDirectionTrue", "environmentWindSpeedTrue"}
    assert np.isclose(wind.fields["environmentWindSpeedTrue"], 5.0)
    assert np.isclose(wind.fields["environmentWindDirectionTrue"], 0.0)
    assert wind.timestamp == points[0].timestamp


def test_route_true_wind_not_repeated_for_same_inputs():
    router, flusher = make_router()
    values = [
        ("environment.wind.angleApparent", 0.0),
        ("environment.wind.speedApparent", 10.0),
        ("navigation.speedOverGround", 5.0),
        ("navigation.courseOverGroundTrue", 0.0),
    ]
    router.route(delta(values))
    router.route(delta(values, timestamp="2024-06-01T12:00:01.000Z"))

    wind_points = [p for p in flusher.pending if "environmentWindSpeedTrue" in p.fields]
    assert len(wind_points) == 1
    assert len(flusher.pending) == 9


def test_true_wind_uses_timestamp_of_triggering_update():
    router, flusher = make_router()
    router.route(delta([
        ("environment.wind.angleApparent", 0.0),
        ("environment.wind.speedApparent", 10.0),
        ("navigation.speedOverGround", 5.0),
    ], timestamp="2024-06-01T12:00:00Z"))
    router.route(delta([
        ("navigation.courseOverGroundTrue", 0.1),
    ], timestamp="2024-06-01T12:00:05Z"))

    wind = flusher.pending[-2]
    assert "environmentWindSpeedTrue" in wind.fields
    assert wind.timestamp == datetime(2024, 6, 1, 12, 0, 5, tzinfo=timezone.utc)


def test_route_invalid_timestamp_falls_back_to_now(caplog):
    router, flusher = make_router()
    before = datetime.now(timezone.utc)
    router.route(delta([("navigation.speedOverGround", 3.2)], timestamp="not a date"))
    after = datetime.now(timezone.utc)

    point = flusher.pending[0]
    assert before <= point.timestamp <= after
    assert "Invalid update timestamp" in caplog.text


def test_route_skips_updates_without_values():
    router, flusher = make_router()
    router.route(Delta(context=None, updates=[Update(timestamp="2024-06-01T12:00:00Z", values=[])]))
    assert flusher.pending == []
    assert router.current_timestamp is None


def test_route_from_signalk_json():
    router, flusher = make_router()
    router.route(Delta.from_dict({
        "context": SELF_CONTEXT,
        "updates": [{
            "source": {"label": "n2k", "type": "NMEA2000"},
            "timestamp": "2024-06-01T12:00:00.250Z",
            "values": [
                {"path": "navigation.position", "value": {"latitude": 60.0, "longitude": 24.9}},
                {"path": "navigation.headingTrue", "value": 1.2},
            ]
        }]
    }))

    fields = [p.fields for p in flusher.pending]
    assert "navigationPosition" in fields[0]
    assert fields[1] == {"navigationHeadingTrue": 1.2}


def test_router_requires_self_id():
    with pytest.raises(ValueError):
        DeltaRouter(BatchFlusher(RecordingSink(), PipelineConfig()), PipelineConfig())


@pytest.mark.parametrize("stamp, microsecond", [
    ("2024-06-01T12:00:00.5Z", 500000),
    ("2024-06-01T12:00:00.25Z", 250000),
    ("2024-06-01T12:00:00.1234Z", 123400),
    ("2024-06-01T12:00:00.123456789Z", 123456),
])
def test_route_parses_any_fraction_length(stamp, microsecond, caplog):
    router, flusher = make_router()
    router.route(delta([("navigation.speedOverGround", 3.2)], timestamp=stamp))

    expected = datetime(2024, 6, 1, 12, 0, 0, microsecond, tzinfo=timezone.utc)
    assert flusher.pending[0].timestamp == expected
    assert "Invalid update timestamp" not in caplog.text


def test_route_ignores_null_context():
    router, flusher = make_router()
    router.route(Delta.from_dict({
        "context": None,
        "updates": [{"timestamp": "2024-06-01T12:00:00Z", "values": [
            {"path": "navigation.speedOverGround", "value": 3.2}
        ]}]
    }))
    assert flusher.pending == []
    assert router.statistics["ignored"] == 1

    router.route(Delta.from_dict({
        "updates": [{"timestamp": "2024-06-01T12:00:00Z", "values": [
            {"path": "navigation.speedOverGround", "value": 3.2}
        ]}]
    }))
    assert len(flusher.pending) == 1
