from __future__ import annotations

import json
import unittest
from typing import Any, Dict, List
from unittest import mock

import requests

from github_analyzer.config import AppConfig, GitHubConfig
from github_analyzer.github_api import GitHubSession, guess_username_from_profile, list_user_repos
from github_analyzer.lister import extract_repository_urls, fetch_user_profile, list_repositories, select_representative
from github_analyzer.models import RepositoryReference, UserProfile

from tests.fakes import FakeLLM


def _response(status: int, payload: Any) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(payload).encode("utf-8")
    response.headers["Content-Type"] = "application/json; charset=utf-8"
    response.reason = "OK" if status == 200 else "Not Found"
    response.url = "https://api.github.com/users/octocat/repos"
    return response


def _repo(name: str, *, fork: bool = False, stars: int = 0, pushed_at: str = "2024-01-01T00:00:00Z") -> Dict[str, Any]:
    return {
        "name": name,
        "html_url": f"https://github.com/octocat/{name}",
        "owner": {"login": "octocat"},
        "fork": fork,
        "stargazers_count": stars,
        "pushed_at": pushed_at,
        "topics": ["cli"],
    }


class ListRepositoriesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = AppConfig()
        self.config.github.per_page = 2

    def test_paginates_and_skips_forks(self) -> None:
        pages = [
            _response(200, [_repo("alpha"), _repo("fork-of-x", fork=True)]),
            _response(200, [_repo("beta")]),
        ]
        seen_pages: List[str] = []

        def fake_get(url, params=None, timeout=None):
            seen_pages.append(params["page"])
            return pages.pop(0)

        with mock.patch.object(requests.Session, "get", side_effect=fake_get):
            result = list_repositories("octocat", self.config)

        self.assertTrue(result.success)
        self.assertEqual(result.profile_url, "https://github.com/octocat")
        self.assertEqual(
            result.repository_urls,
            ["https://github.com/octocat/alpha", "https://github.com/octocat/beta"],
        )
        self.assertEqual(result.fork_count, 1)
        self.assertEqual(seen_pages, ["1", "2"])
        self.assertEqual(result.repositories[0].topics, ("cli",))

    def test_empty_page_stops_listing(self) -> None:
        pages = [_response(200, [_repo("alpha"), _repo("beta")]), _response(200, [])]
        with mock.patch.object(requests.Session, "get", side_effect=lambda *a, **k: pages.pop(0)):
            result = list_repositories("octocat", self.config)
        self.assertEqual(len(result.repository_urls), 2)

    def test_missing_account_is_unsuccessful(self) -> None:
        with mock.patch.object(requests.Session, "get", return_value=_response(404, {"message": "Not Found"})):
            result = list_repositories("ghost", self.config)
        self.assertFalse(result.success)
        self.assertEqual(result.repository_urls, [])
        self.assertIn("ghost", result.message)

    def test_transport_error_is_attempted_once(self) -> None:
        with mock.patch.object(
            requests.Session, "get", side_effect=requests.ConnectionError("offline")
        ) as get:
            result = list_repositories("octocat", self.config)
        self.assertFalse(result.success)
        self.assertEqual(get.call_count, 1)

    def test_token_is_sent_as_bearer(self) -> None:
        captured: Dict[str, str] = {}

        def fake_get(session, url, params=None, timeout=None):
            captured.update(session.headers)
            return _response(200, [])

        with mock.patch.object(requests.Session, "get", autospec=True, side_effect=fake_get):
            list_repositories("octocat", self.config, token="secret")
        self.assertEqual(captured["Authorization"], "Bearer secret")

    def test_not_found_with_a_list_body_is_unsuccessful(self) -> None:
        with mock.patch.object(requests.Session, "get", return_value=_response(404, ["unexpected"])):
            result = list_repositories("ghost", self.config)
        self.assertFalse(result.success)
        self.assertIn("ghost", result.message)

    def test_server_error_with_a_string_body(self) -> None:
        session = GitHubSession.create(GitHubConfig())
        with mock.patch.object(requests.Session, "get", return_value=_response(500, "upstream exploded")):
            with self.assertRaises(requests.HTTPError) as caught:
                list_user_repos(session, "octocat")
        self.assertIn("500", str(caught.exception))
        self.assertIn("upstream exploded", str(caught.exception))


class FetchUserProfileTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = AppConfig()

    def test_profile_fields(self) -> None:
        payload = {"login": "octocat", "name": None, "bio": "Mascot", "followers": 42, "public_repos": 8}
        with mock.patch.object(requests.Session, "get", return_value=_response(200, payload)) as get:
            profile = fetch_user_profile("octocat", self.config)
        self.assertEqual(
            profile,
            UserProfile(username="octocat", name="octocat", bio="Mascot", followers=42, public_repos=8),
        )
        self.assertEqual(get.call_args.args[0], "https://api.github.com/users/octocat")

    def test_missing_account_gives_none(self) -> None:
        with mock.patch.object(requests.Session, "get", return_value=_response(404, {"message": "Not Found"})):
            self.assertIsNone(fetch_user_profile("ghost", self.config))

    def test_unexpected_payload_gives_none(self) -> None:
        with mock.patch.object(requests.Session, "get", return_value=_response(200, ["octocat"])):
            self.assertIsNone(fetch_user_profile("octocat", self.config))

    def test_transport_error_gives_none(self) -> None:
        with mock.patch.object(requests.Session, "get", side_effect=requests.ConnectionError("offline")):
            self.assertIsNone(fetch_user_profile("octocat", self.config))


class ExtractUrlsTests(unittest.TestCase):
    def test_extracts_deduplicated_urls_in_order(self) -> None:
        text = (
            "1. https://github.com/octocat/alpha - great.\n"
            "2. https://github.com/someone/else\n"
            "3. https://github.com/octocat/beta.\n"
            "4. https://github.com/octocat/alpha again"
        )
        self.assertEqual(
            extract_repository_urls("octocat", text, 5),
            ["https://github.com/octocat/alpha", "https://github.com/octocat/beta"],
        )

    def test_limit_is_applied(self) -> None:
        text = " ".join(f"https://github.com/octocat/r{index}" for index in range(8))
        self.assertEqual(len(extract_repository_urls("octocat", text, 5)), 5)


class SelectRepresentativeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.repositories = [
            RepositoryReference.from_payload(_repo("old-popular", stars=10, pushed_at="2020-01-01T00:00:00Z")),
            RepositoryReference.from_payload(_repo("fresh", stars=1, pushed_at="2024-06-01T00:00:00Z")),
            RepositoryReference.from_payload(_repo("stale", stars=1, pushed_at="2019-06-01T00:00:00Z")),
        ]

    def test_uses_model_answer(self) -> None:
        llm = FakeLLM([("Below is a list of GitHub repositories.", "Pick https://github.com/octocat/fresh")])
        selected = select_representative("octocat", self.repositories, llm, limit=2)
        self.assertEqual(selected, ["https://github.com/octocat/fresh"])
        self.assertIn("Repository URL: https://github.com/octocat/stale", llm.prompts[0])

    def test_username_case_does_not_matter(self) -> None:
        llm = FakeLLM([], default="- https://github.com/octocat/fresh")
        selected = select_representative("OctoCat", self.repositories, llm)
        self.assertEqual(selected, ["https://github.com/octocat/fresh"])

    def test_answer_without_urls_selects_nothing(self) -> None:
        llm = FakeLLM([], default="I cannot decide.")
        self.assertEqual(select_representative("octocat", self.repositories, llm), [])

    def test_without_model_orders_by_stars_then_recency(self) -> None:
        selected = select_representative("octocat", self.repositories, None, limit=2)
        self.assertEqual(
            selected,
            ["https://github.com/octocat/old-popular", "https://github.com/octocat/fresh"],
        )

    def test_no_candidates(self) -> None:
        self.assertEqual(select_representative("octocat", [], FakeLLM([])), [])


class ProfileParsingTests(unittest.TestCase):
    def test_accepts_urls_and_names(self) -> None:
        self.assertEqual(guess_username_from_profile("https://github.com/octocat/"), "octocat")
        self.assertEqual(guess_username_from_profile("octocat"), "octocat")
        with self.assertRaises(ValueError):
            guess_username_from_profile("https://github.com")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
