"""Alarm lifecycle driven through AlarmNotifier.notify()."""
import pytest
from sqlalchemy import select

from core.exceptions import AlarmStoreError, NotFoundError, PointValueError
from core.timefmt import MAX_TS_MS
from models import PlcAlarm, PointValue
from services.alarm_notifier import AlarmNotifier, PointValueEvent
from services.edge_detector import AlarmAction


@pytest.fixture
def notifier():
    return AlarmNotifier()


async def feed(session, notifier, point_id, events):
    actions = []
    for ts, value in events:
        actions.append(await notifier.notify(session, PointValueEvent(point_id, ts, value)))
        await session.commit()
    return actions


async def alarms_for(session, point_id):
    result = await session.execute(
        select(PlcAlarm).where(PlcAlarm.data_point_id == point_id).order_by(PlcAlarm.id)
    )
    return list(result.scalars().all())


async def test_unsupervised_point_never_creates_alarms(session, points, notifier):
    actions = await feed(session, notifier, 103, [(1, 1), (2, 0), (3, 1), (4, 1), (5, 0)])

    assert set(actions) == {AlarmAction.NONE}
    assert await alarms_for(session, 103) == []


async def test_unknown_point_is_skipped(session, points, notifier):
    assert await notifier.notify(session, PointValueEvent(999, 1000, 1)) is AlarmAction.NONE


async def test_rising_edge_opens_one_alarm_with_snapshot(session, points, notifier):
    actions = await feed(session, notifier, 101, [(500, 0), (1000, 1)])

    assert actions == [AlarmAction.NONE, AlarmAction.OPEN]
    [alarm] = await alarms_for(session, 101)
    assert alarm.active_time == 1000
    assert alarm.inactive_time == 0
    assert alarm.acknowledge_time == 0
    assert alarm.level == 2
    assert alarm.data_point_level == 2
    assert alarm.data_point_xid == "DP_P101"
    assert alarm.data_point_name == "Boiler P101 AL overpressure"


async def test_repeated_active_value_does_not_open_again(session, points, notifier):
    actions = await feed(session, notifier, 101, [(1000, 1), (2000, 1), (3000, "1")])

    assert actions == [AlarmAction.OPEN, AlarmAction.NONE, AlarmAction.NONE]
    assert len(await alarms_for(session, 101)) == 1


async def test_falling_edge_closes_open_alarm(session, points, notifier):
    actions = await feed(session, notifier, 101, [(1000, 1), (5000, 0)])

    assert actions == [AlarmAction.OPEN, AlarmAction.CLOSE]
    [alarm] = await alarms_for(session, 101)
    assert alarm.active_time == 1000
    assert alarm.inactive_time == 5000


async def test_repeated_cycles_keep_one_open_alarm(session, points, notifier):
    await feed(
        session, notifier, 102,
        [(100, 1), (200, 0), (300, 0), (400, 1), (500, 1), (600, 0), (700, 1)],
    )

    alarms = await alarms_for(session, 102)
    assert [(a.active_time, a.inactive_time) for a in alarms] == [
        (100, 200),
        (400, 600),
        (700, 0),
    ]
    assert sum(1 for a in alarms if a.is_open) == 1


async def test_snapshot_is_not_refreshed_after_point_changes(session, points, notifier):
    await feed(session, notifier, 101, [(1000, 1)])

    point = points["P101"]
    point.point_name = "Renamed"
    point.plc_alarm_level = 1
    await session.commit()
    await feed(session, notifier, 101, [(2000, 0)])

    [alarm] = await alarms_for(session, 101)
    assert alarm.data_point_name == "Boiler P101 AL overpressure"
    assert alarm.level == 2
    assert alarm.inactive_time == 2000


async def test_level_dropped_to_zero_leaves_open_alarm_untouched(session, points, notifier):
    await feed(session, notifier, 101, [(1000, 1)])
    points["P101"].plc_alarm_level = 0
    await session.commit()

    assert await feed(session, notifier, 101, [(2000, 0)]) == [AlarmAction.NONE]
    [alarm] = await alarms_for(session, 101)
    assert alarm.is_open


async def test_malformed_level_is_skipped(session, points, notifier):
    points["P101"].plc_alarm_level = 7
    await session.commit()

    assert await feed(session, notifier, 101, [(1000, 1)]) == [AlarmAction.NONE]
    assert await alarms_for(session, 101) == []


async def test_non_boolean_value_is_skipped(session, points, notifier):
    assert await feed(session, notifier, 101, [(1000, "on")]) == [AlarmAction.NONE]
    assert await alarms_for(session, 101) == []


async def test_stale_falling_edge_does_not_close(session, points, notifier):
    actions = await feed(session, notifier, 101, [(5000, 1), (4000, 0)])

    assert actions == [AlarmAction.OPEN, AlarmAction.NONE]
    [alarm] = await alarms_for(session, 101)
    assert alarm.is_open


async def test_store_error_propagates(session, points):
    class BrokenStore:
        async def find_open(self, session, point_id):
            raise AlarmStoreError("boom")

    notifier = AlarmNotifier(store=BrokenStore())
    with pytest.raises(AlarmStoreError):
        await notifier.notify(session, PointValueEvent(101, 1000, 1))


async def test_ingest_stores_sample_and_opens_alarm(session, points, notifier):
    action = await notifier.ingest(session, PointValueEvent(101, 1000, 1))

    assert action is AlarmAction.OPEN
    samples = (await session.execute(select(PointValue))).scalars().all()
    assert [(s.data_point_id, s.ts, s.point_value) for s in samples] == [(101, 1000, 1.0)]
    assert len(await alarms_for(session, 101)) == 1


async def test_ingest_unknown_point(session, points, notifier):
    with pytest.raises(NotFoundError):
        await notifier.ingest(session, PointValueEvent(999, 1000, 1))


async def test_ingest_rejects_non_numeric_value(session, points, notifier):
    with pytest.raises(PointValueError):
        await notifier.ingest(session, PointValueEvent(101, 1000, "on"))


def test_event_from_stream_fields():
    event = PointValueEvent.from_fields({"point_id": "101", "ts": "1000", "value": "1"})
    assert event == PointValueEvent(point_id=101, ts=1000, value="1")


@pytest.mark.parametrize("fields", [{}, {"point_id": "x", "ts": "1", "value": "1"}, {"point_id": 1, "value": 1}])
def test_event_from_malformed_fields(fields):
    with pytest.raises(PointValueError):
        PointValueEvent.from_fields(fields)


@pytest.mark.parametrize("ts", [0, -1000, MAX_TS_MS + 1, 10**15])
def test_event_rejects_out_of_range_ts(ts):
    with pytest.raises(PointValueError):
        PointValueEvent(101, ts, 1)


def test_event_from_fields_rejects_out_of_range_ts():
    with pytest.raises(PointValueError):
        PointValueEvent.from_fields({"point_id": "101", "ts": str(10**15), "value": "1"})
    with pytest.raises(PointValueError):
        PointValueEvent.from_fields({"point_id": "101", "ts": "0", "value": "1"})
