import unittest
from datetime import datetime, timezone

from presence_engine.errors import ValidationError
from presence_engine.models import PresenceKind
from presence_engine.services.activity_bridge import mark_from_activity
from presence_engine.services.document_store import InMemoryDocumentStore
from presence_engine.services.presence import get_month, mark_day


class ActivityBridgeTests(unittest.TestCase):
    def test_marks_day_with_activity_kind(self) -> None:
        store = InMemoryDocumentStore()

        result = mark_from_activity(
            store,
            user_id="u1",
            activity_date="2024-02-17",
            now_utc=datetime(2024, 2, 17, 18, 0, tzinfo=timezone.utc),
        )

        self.assertEqual(result.status, "marked")
        self.assertEqual(result.date, "2024-02-17")
        self.assertIsNotNone(result.stats)
        self.assertEqual(result.stats.present_saturdays, 1)
        record = get_month(store, user_id="u1", year=2024, month=1)
        self.assertEqual(record.entries["17"].kind, PresenceKind.ACTIVITY)

    def test_already_marked_day_is_a_noop(self) -> None:
        store = InMemoryDocumentStore()
        mark_day(store, user_id="u1", year=2024, month=1, day="17")
        before = store.get("u1_2024_02")

        result = mark_from_activity(store, user_id="u1", activity_date="2024-02-17")

        self.assertEqual(result.status, "already_marked")
        self.assertIsNone(result.stats)
        self.assertEqual(store.get("u1_2024_02"), before)
        record = get_month(store, user_id="u1", year=2024, month=1)
        self.assertEqual(record.entries["17"].kind, PresenceKind.MANUAL)

    def test_invalid_activity_date_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            mark_from_activity(InMemoryDocumentStore(), user_id="u1", activity_date="2024/02/17")


if __name__ == "__main__":
    unittest.main()
