from __future__ import annotations

import unittest

from fastapi.testclient import TestClient

from presence_engine.dependencies import get_document_store, get_roster_provider
from presence_engine.errors import UpstreamError
from presence_engine.main import app
from presence_engine.schemas import RosterMember
from presence_engine.services.document_store import InMemoryDocumentStore
from presence_engine.services.roster import JsonFileRosterProvider, StaticRosterProvider


class _BrokenStore(InMemoryDocumentStore):
    def get(self, key):  # type: ignore[no-untyped-def]
        if key.startswith("broken_"):
            raise UpstreamError("Document store read failed")
        return super().get(key)


class PresenceEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = _BrokenStore()
        self.roster = StaticRosterProvider(
            [
                RosterMember(user_id="alice", display_name="Alice"),
                RosterMember(user_id="broken", display_name="Broken"),
                RosterMember(user_id="carol", display_name="Carol"),
            ]
        )
        app.dependency_overrides[get_document_store] = lambda: self.store
        app.dependency_overrides[get_roster_provider] = lambda: self.roster
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_mark_presence_returns_created_with_stats(self) -> None:
        response = self.client.post("/api/users/alice/presence", json={"date": "2024-02-03"})

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["date"], "2024-02-03")
        self.assertEqual(body["kind"], "manual")
        self.assertEqual(body["stats"]["present_saturdays"], 1)
        self.assertIn("X-Request-Id", response.headers)

    def test_duplicate_mark_is_conflict(self) -> None:
        self.client.post("/api/users/alice/presence", json={"date": "2024-02-03"})

        response = self.client.post("/api/users/alice/presence", json={"date": "2024-02-03"})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "PRESENCE_ALREADY_MARKED")

    def test_malformed_date_is_rejected(self) -> None:
        response = self.client.post("/api/users/alice/presence", json={"date": "03/02/2024"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_missing_date_is_request_validation_error(self) -> None:
        response = self.client.post("/api/users/alice/presence", json={})

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    def test_remove_presence(self) -> None:
        self.client.post("/api/users/alice/presence", json={"date": "2024-02-03"})

        response = self.client.delete("/api/users/alice/presence/2024-02-03")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["stats"]["present_days"], 0)

        missing = self.client.delete("/api/users/alice/presence/2024-02-03")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["error"]["code"], "PRESENCE_NOT_FOUND")

    def test_month_route_takes_one_based_month(self) -> None:
        self.client.post("/api/users/alice/presence", json={"date": "2024-02-10", "kind": "activity"})

        response = self.client.get("/api/users/alice/presence/month/2024/2")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["month"], 2)
        self.assertEqual(body["count"], 1)
        self.assertEqual(body["presence_records"][0]["date"], "2024-02-10")
        self.assertEqual(body["presence_records"][0]["kind"], "activity")

        january = self.client.get("/api/users/alice/presence/month/2024/1").json()
        self.assertEqual(january["count"], 0)
        self.assertEqual(january["stats"]["total_days"], 31)

    def test_month_route_rejects_out_of_range_months(self) -> None:
        for month in (0, 13):
            with self.subTest(month=month):
                response = self.client.get(f"/api/users/alice/presence/month/2024/{month}")
                self.assertEqual(response.status_code, 400)

    def test_stats_route_lists_saturdays(self) -> None:
        for day in ("03", "10", "17", "24"):
            self.client.post("/api/users/alice/presence", json={"date": f"2024-02-{day}"})

        body = self.client.get("/api/users/alice/presence/stats/2024/2").json()

        self.assertTrue(body["stats"]["meets_all_saturdays"])
        self.assertTrue(body["stats"]["is_compliant"])
        self.assertEqual(body["saturdays"], body["present_saturdays"])
        self.assertEqual(len(body["saturdays"]), 4)

    def test_recorded_months(self) -> None:
        self.client.post("/api/users/alice/presence", json={"date": "2024-02-10"})
        self.client.post("/api/users/alice/presence", json={"date": "2024-01-10"})

        body = self.client.get("/api/users/alice/presence/months").json()

        self.assertEqual([(item["year"], item["month"]) for item in body], [(2024, 1), (2024, 2)])

    def test_activity_participation_is_idempotent(self) -> None:
        first = self.client.post(
            "/api/users/alice/presence/activity-participation",
            json={"activity_date": "2024-02-10"},
        )
        second = self.client.post(
            "/api/users/alice/presence/activity-participation",
            json={"activity_date": "2024-02-10"},
        )

        self.assertEqual(first.status_code, 201)
        self.assertEqual(first.json()["status"], "marked")
        self.assertEqual(second.status_code, 200)
        self.assertEqual(second.json()["status"], "already_marked")

    def test_overview_tolerates_a_failing_user(self) -> None:
        self.client.post("/api/users/alice/presence", json={"date": "2024-02-03"})

        response = self.client.get("/api/presence/overview/2024/2")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([item["user_id"] for item in body["users"]], ["alice", "broken", "carol"])
        self.assertTrue(body["users"][1]["failed"])
        self.assertEqual(body["totals"]["total_users"], 3)
        self.assertEqual(body["totals"]["users_with_errors"], 1)
        self.assertEqual(body["totals"]["users_with_data"], 1)
        self.assertAlmostEqual(body["totals"]["average_present_days"], 1 / 3)
        self.assertEqual(body["month"], 2)

    def test_overview_reports_roster_failure(self) -> None:
        app.dependency_overrides[get_roster_provider] = lambda: JsonFileRosterProvider("/nonexistent/roster.json")

        response = self.client.get("/api/presence/overview/2024/2")

        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["error"]["code"], "UPSTREAM_ERROR")

    def test_user_detail_route(self) -> None:
        self.client.post("/api/users/carol/presence", json={"date": "2024-02-05"})

        response = self.client.get("/api/presence/users/carol/2024/2")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["user"]["display_name"], "Carol")
        self.assertEqual(response.json()["total_records"], 1)

        unknown = self.client.get("/api/presence/users/zed/2024/2")
        self.assertEqual(unknown.status_code, 404)
        self.assertEqual(unknown.json()["error"]["code"], "USER_NOT_FOUND")

    def test_single_user_reads_propagate_upstream_errors(self) -> None:
        response = self.client.get("/api/users/broken/presence/month/2024/2")

        self.assertEqual(response.status_code, 502)


if __name__ == "__main__":
    unittest.main()
