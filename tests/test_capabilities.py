"""Tests for optional-column capability tracking."""

from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError

from api.v1.plans.capabilities import SchemaCapabilityCache, is_missing_column_error


def _error(cls, message):
    return cls("INSERT INTO video_plan_items ...", {}, Exception(message))


class TestMissingColumnDetection:
    def test_sqlite_message(self):
        error = _error(OperationalError, "table video_plan_items has no column named look_id")
        assert is_missing_column_error(error, "look_id") is True
        assert is_missing_column_error(error, "avatar_id") is False

    def test_postgres_message(self):
        error = _error(
            ProgrammingError,
            'column "avatar_id" of relation "video_plan_items" does not exist',
        )
        assert is_missing_column_error(error, "avatar_id") is True

    def test_unrelated_errors(self):
        error = _error(IntegrityError, "NOT NULL constraint failed: video_plan_items.look_id")
        assert is_missing_column_error(error, "look_id") is False
        assert is_missing_column_error(ValueError("look_id does not exist"), "look_id") is False


class TestSchemaCapabilityCache:
    def test_unknown_columns_are_attempted(self):
        cache = SchemaCapabilityCache()
        assert cache.status("avatar_id") is None
        assert cache.is_available("avatar_id") is True

    def test_mark_missing_sticks(self):
        cache = SchemaCapabilityCache()
        cache.mark_missing("look_id")
        assert cache.is_available("look_id") is False
        assert cache.status("look_id") is False

        # A later success elsewhere does not resurrect a known-missing column
        cache.mark_present("look_id")
        assert cache.is_available("look_id") is False

    def test_mark_present(self):
        cache = SchemaCapabilityCache()
        cache.mark_present("avatar_id")
        assert cache.status("avatar_id") is True

    def test_invalidate(self):
        cache = SchemaCapabilityCache()
        cache.mark_missing("look_id")
        cache.mark_missing("avatar_id")

        cache.invalidate("look_id")
        assert cache.status("look_id") is None
        assert cache.status("avatar_id") is False

        cache.invalidate()
        assert cache.is_available("avatar_id") is True
