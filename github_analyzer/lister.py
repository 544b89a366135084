from __future__ import annotations

import re
from typing import List, Optional, Sequence

import requests

from .config import AppConfig
from .errors import AccountNotFoundError
from .github_api import GitHubSession, get_user_profile, list_user_repos, profile_url_for
from .llm import RepositoryRanker, TextModel
from .logging import get_logger
from .models import ListingResult, RepositoryReference, UserProfile

logger = get_logger("lister")


def list_repositories(username: str, config: AppConfig, token: Optional[str] = None) -> ListingResult:
    """Enumerate the account's non-fork repositories.

    Never raises: a missing account or transport failure comes back as an
    unsuccessful result with an empty URL list.
    """
    profile_url = profile_url_for(username, config.github.host)
    session = GitHubSession.create(config.github, token=token)
    try:
        payloads = list_user_repos(session, username)
    except AccountNotFoundError as error:
        logger.error("Listing repositories failed: %s", error)
        return ListingResult(success=False, message=str(error), profile_url=profile_url)
    except (requests.RequestException, ValueError) as error:
        logger.error("Listing repositories for %s failed: %s", username, error)
        return ListingResult(
            success=False,
            message=f"Failed to list repositories: {error}",
            profile_url=profile_url,
        )
    finally:
        session.close()

    references: List[RepositoryReference] = []
    fork_count = 0
    for payload in payloads:
        if payload.get("fork"):
            fork_count += 1
            continue
        references.append(RepositoryReference.from_payload(payload))

    logger.info("%s owns %d repositories (%d forks skipped)", username, len(references), fork_count)
    return ListingResult(
        success=True,
        message=f"Listed repositories for {username}",
        profile_url=profile_url,
        repository_urls=[reference.url for reference in references],
        fork_count=fork_count,
        repositories=references,
    )


def fetch_user_profile(username: str, config: AppConfig, token: Optional[str] = None) -> Optional[UserProfile]:
    """Public profile of the account, or None when it cannot be fetched."""
    with GitHubSession.create(config.github, token=token) as session:
        try:
            payload = get_user_profile(session, username)
        except (AccountNotFoundError, requests.RequestException, ValueError) as error:
            logger.warning("Profile lookup for %s failed: %s", username, error)
            return None
    return UserProfile.from_payload(payload)


def describe_repository(reference: RepositoryReference) -> str:
    topics = ", ".join(reference.topics) if reference.topics else "none"
    return "\n".join(
        [
            f"Repository URL: {reference.url}",
            f"Name: {reference.name}",
            f"Description: {reference.description or 'none'}",
            f"Language: {reference.language or 'unknown'}",
            f"Stars: {reference.stars}",
            f"Forks: {reference.forks}",
            f"Open Issues: {reference.open_issues}",
            f"Has Issues: {reference.has_issues}",
            f"Has Projects: {reference.has_projects}",
            f"Has Wiki: {reference.has_wiki}",
            f"Has Discussions: {reference.has_discussions}",
            f"Created At: {reference.created_at}",
            f"Updated At: {reference.updated_at}",
            f"Last Push: {reference.pushed_at}",
            f"Size (KB): {reference.size_kb}",
            f"Topics: {topics}",
            "---------------------------",
        ]
    )


def extract_repository_urls(username: str, text: str, limit: int, host: str = "github.com") -> List[str]:
    pattern = re.compile(rf"https://{re.escape(host)}/{re.escape(username)}/[A-Za-z0-9_.-]+", re.IGNORECASE)
    urls: List[str] = []
    for match in pattern.findall(text or ""):
        url = match.rstrip(".")
        if url not in urls:
            urls.append(url)
        if len(urls) >= limit:
            break
    return urls


def select_representative(
    username: str,
    repositories: Sequence[RepositoryReference],
    llm: Optional[TextModel],
    limit: int = 5,
    host: str = "github.com",
) -> List[str]:
    """Narrow a listing to the repositories most telling about the developer.

    An answer that names no matching URL yields an empty list even when
    candidates existed.
    """
    if not repositories or limit <= 0:
        return []
    if llm is None:
        ordered = sorted(repositories, key=lambda item: item.pushed_at or "", reverse=True)
        ordered.sort(key=lambda item: item.stars, reverse=True)
        return [item.url for item in ordered[:limit]]

    descriptions = "\n\n".join(describe_repository(reference) for reference in repositories)
    answer = RepositoryRanker(llm).rank(descriptions, limit)
    selected = extract_repository_urls(username, answer, limit, host=host)
    logger.info("Selected %d representative repositories for %s", len(selected), username)
    return selected

