import pytest

from trip_planner.trip_preference import UserPreferences
from trip_planner.utils.trip_store import RedisTripStore, TripRecord, new_trip_id


class FakeRedis:
    """Dict-backed stand-in for the few redis commands the store uses."""

    def __init__(self):
        self.data = {}
        self.expiries = {}

    def set(self, key, value, ex=None, nx=False):
        if nx and key in self.data:
            return None
        self.data[key] = value.encode() if isinstance(value, str) else value
        self.expiries[key] = ex
        return True

    def get(self, key):
        return self.data.get(key)

    def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0


@pytest.fixture
def fake_redis():
    return FakeRedis()


def make_record(**overrides):
    prefs = UserPreferences.model_validate(
        {"destination": "Kyoto, Japan", "startDate": "2025-11-02", "endDate": "2025-11-04"}
    )
    data = dict(
        destination="Kyoto, Japan",
        start_date="2025-11-02",
        end_date="2025-11-04",
        total_days=3,
        preview_days_generated=1,
        user_preferences=prefs,
        images={1: "data:image/png;base64,AAAA"},
    )
    data.update(overrides)
    return TripRecord(**data)


def test_new_trip_id_is_ten_hex_characters():
    trip_id = new_trip_id()
    assert len(trip_id) == 10
    int(trip_id, 16)


def test_create_and_get_round_trip(fake_redis):
    store = RedisTripStore(redis_client=fake_redis)
    record = make_record()

    assert store.create(record) is True
    loaded = store.get(record.id)

    assert f"trip_planner_trip:{record.id}" in fake_redis.data
    assert loaded.images == {1: "data:image/png;base64,AAAA"}
    assert loaded.user_preferences.destination == "Kyoto, Japan"
    assert loaded.unlocked is False


def test_create_refuses_taken_id(fake_redis):
    store = RedisTripStore(redis_client=fake_redis)
    store.create(make_record(id="abcdef0123"))
    assert store.create(make_record(id="abcdef0123", destination="Osaka, Japan")) is False
    assert store.get("abcdef0123").destination == "Kyoto, Japan"


def test_save_overwrites(fake_redis):
    store = RedisTripStore(redis_client=fake_redis)
    record = make_record()
    store.create(record)

    record.unlocked = True
    record.email = "traveler@example.com"
    store.save(record)

    loaded = store.get(record.id)
    assert loaded.unlocked is True
    assert loaded.email == "traveler@example.com"


def test_expiry_is_only_set_when_configured(fake_redis):
    RedisTripStore(redis_client=fake_redis).create(make_record(id="noexpiry00"))
    RedisTripStore(redis_client=fake_redis, expiry_time=3600).create(make_record(id="expiring00"))
    assert fake_redis.expiries["trip_planner_trip:noexpiry00"] is None
    assert fake_redis.expiries["trip_planner_trip:expiring00"] == 3600


def test_get_missing_and_delete(fake_redis):
    store = RedisTripStore(redis_client=fake_redis, prefix="test:")
    assert store.get("missing") is None
    record = make_record()
    store.create(record)
    assert store.delete(record.id) is True
    assert store.get(record.id) is None
