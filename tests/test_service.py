from __future__ import annotations

import unittest
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi.testclient import TestClient

from github_analyzer.config import AppConfig
from github_analyzer.errors import AccountNotFoundError
from github_analyzer.service import create_app
from github_analyzer.store import ReportStore, fake_report


class ReportStoreTests(unittest.TestCase):
    def test_keys_are_case_insensitive(self) -> None:
        store = ReportStore()
        store.put("OctoCat", {"public": {}})
        self.assertIn("octocat", store)
        self.assertEqual(store.get("OCTOCAT").username, "OctoCat")
        self.assertEqual(len(store), 1)

    def test_list_is_newest_first_and_put_replaces(self) -> None:
        store = ReportStore()
        now = datetime.now(timezone.utc)
        store.put("old", {}, created_at=now - timedelta(hours=1))
        store.put("new", {}, created_at=now)
        store.put("old", {"v": 2}, created_at=now - timedelta(hours=2))
        self.assertEqual([entry.username for entry in store.list()], ["new", "old"])
        self.assertEqual(store.get("old").report, {"v": 2})

    def test_remove_and_clear(self) -> None:
        store = ReportStore()
        store.put("a", {})
        store.put("b", {})
        self.assertTrue(store.remove("A"))
        self.assertFalse(store.remove("a"))
        store.clear()
        self.assertEqual(len(store), 0)

    def test_fake_report_is_deterministic(self) -> None:
        self.assertEqual(fake_report("x", date(2024, 1, 1)), fake_report("x", date(2024, 1, 1)))


class ServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = ReportStore()
        self.calls: List[Tuple[str, Optional[str]]] = []

    async def _runner(self, username: str, token: Optional[str]) -> Dict[str, Any]:
        self.calls.append((username, token))
        if username == "ghost":
            raise AccountNotFoundError(username)
        return {"public": {"github_username": username, "total_repositories": 0, "topics_detected": []}}

    def _client(self, *, test_endpoints: bool = False) -> TestClient:
        config = AppConfig()
        config.server.enable_test_endpoints = test_endpoints
        return TestClient(create_app(config, self.store, runner=self._runner))

    def test_health(self) -> None:
        response = self._client().get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_unknown_report_is_404(self) -> None:
        self.assertEqual(self._client().get("/reports/nobody").status_code, 404)

    def test_analyze_stores_pruned_report(self) -> None:
        client = self._client()
        response = client.post("/analyze", json={"username": "octocat", "token": "t"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["report"], {"public": {"github_username": "octocat"}})
        self.assertEqual(self.calls, [("octocat", "t")])

        fetched = client.get("/reports/octocat").json()
        self.assertEqual(fetched["report"]["public"]["github_username"], "octocat")
        listed = client.get("/reports").json()
        self.assertEqual([item["username"] for item in listed], ["octocat"])

    def test_analysis_errors_map_to_bad_gateway(self) -> None:
        response = self._client().post("/analyze", json={"username": "ghost"})
        self.assertEqual(response.status_code, 502)
        self.assertIn("ghost", response.json()["detail"])
        self.assertNotIn("ghost", self.store)

    def test_seed_endpoint_disabled_by_default(self) -> None:
        response = self._client().post("/test/reports/demo")
        self.assertIn(response.status_code, (404, 405))
        self.assertEqual(len(self.store), 0)

    def test_seed_endpoint_when_enabled(self) -> None:
        client = self._client(test_endpoints=True)
        response = client.post("/test/reports/demo")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["report"]["public"]["github_username"], "demo")
        self.assertIn("demo", self.store)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
