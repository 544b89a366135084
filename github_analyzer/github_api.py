from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from requests import Response
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from .config import GitHubConfig
from .errors import AccountNotFoundError


@dataclass(slots=True)
class GitHubSession:
    http: requests.Session
    config: GitHubConfig
    rate_limited: bool = False

    @classmethod
    def create(cls, config: GitHubConfig, token: Optional[str] = None) -> "GitHubSession":
        session = requests.Session()
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": config.user_agent,
        }
        token = token or os.getenv(config.token_env)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        session.headers.update(headers)
        return cls(http=session, config=config)

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "GitHubSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _raise_for_status(response: Response) -> None:
    try:
        response.raise_for_status()
    except requests.HTTPError as error:
        message = response.text
        if response.headers.get("Content-Type", "").startswith("application/json"):
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("message"):
                message = body["message"]
        raise requests.HTTPError(
            f"GitHub API request failed: {response.status_code} {message}", response=response
        ) from error


def _is_transient(error: BaseException) -> bool:
    if isinstance(error, requests.HTTPError) and error.response is not None:
        status = error.response.status_code
        return status >= 500 or status in (403, 429)
    return isinstance(error, requests.RequestException)


def _get(session: GitHubSession, path: str, params: Optional[Dict[str, str]] = None) -> Response:
    url = f"{session.config.api_root}{path}"
    retrying = Retrying(
        stop=stop_after_attempt(session.config.request_attempts),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception(_is_transient),
        reraise=True,
    )
    for attempt in retrying:
        with attempt:
            response = session.http.get(url, params=params, timeout=session.config.timeout_s)
            if response.status_code == 403 and "rate limit" in response.text.lower():
                session.rate_limited = True
                raise requests.HTTPError("GitHub API rate limit exceeded", response=response)
            _raise_for_status(response)
    return response


def list_user_repos(session: GitHubSession, username: str) -> List[Dict[str, Any]]:
    """Return every repository payload for ``username``, forks included."""
    per_page = session.config.per_page
    repos: List[Dict[str, Any]] = []
    params = {"per_page": str(per_page), "type": "owner", "sort": "pushed"}
    for page in range(1, session.config.max_pages + 1):
        params["page"] = str(page)
        try:
            response = _get(session, f"/users/{username}/repos", params=params)
        except requests.HTTPError as error:
            if error.response is not None and error.response.status_code == 404:
                raise AccountNotFoundError(username) from error
            raise
        page_items = response.json()
        if not page_items:
            break
        repos.extend(page_items)
        if len(page_items) < per_page:
            break
    return repos


def get_user_profile(session: GitHubSession, username: str) -> Dict[str, Any]:
    try:
        response = _get(session, f"/users/{username}")
    except requests.HTTPError as error:
        if error.response is not None and error.response.status_code == 404:
            raise AccountNotFoundError(username) from error
        raise
    payload = response.json()
    if not isinstance(payload, dict):
        raise ValueError(f"Unexpected profile payload for {username}")
    return payload


def profile_url_for(username: str, host: str = "github.com") -> str:
    return f"https://{host}/{username}"


def guess_username_from_profile(profile: str) -> str:
    """Accept a bare account name or a profile URL."""
    sanitized = profile.strip().rstrip("/")
    if not sanitized or sanitized.endswith("github.com"):
        raise ValueError("A GitHub username is required, e.g. octocat or https://github.com/octocat")
    if "github.com/" in sanitized:
        sanitized = sanitized.split("github.com/")[-1]
    username = sanitized.split("/")[0]
    if not username:
        raise ValueError("Unable to parse GitHub username")
    return username
