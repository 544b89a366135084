from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence
from urllib.parse import urlparse, urlunparse

from .errors import CloneError
from .logging import get_logger, redact
from .models import LocalRepository

logger = get_logger("cloner")


def validate_repository_url(url: str, host: str = "github.com") -> None:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or parsed.hostname != host:
        raise CloneError(f"Invalid URL {url!r}: only {host} repositories are allowed")


def repository_directory_name(url: str) -> str:
    segment = urlparse(url).path.rstrip("/").split("/")[-1]
    if segment.endswith(".git"):
        segment = segment[: -len(".git")]
    return segment or "repo"


def build_clone_url(url: str, username: str, token: Optional[str] = None) -> str:
    if not token:
        return url
    parsed = urlparse(url)
    netloc = f"{username}:{token}@{parsed.hostname}"
    return urlunparse(("https", netloc, parsed.path, "", "", ""))


async def clone_repository(
    url: str,
    destination: Path,
    username: str,
    token: Optional[str] = None,
    *,
    branch: Optional[str] = None,
    host: str = "github.com",
    timeout_s: Optional[float] = None,
) -> LocalRepository:
    """Clone ``url`` under ``destination``; an existing directory is reused as is."""
    try:
        validate_repository_url(url, host)
        target = (destination / repository_directory_name(url)).resolve()
        if target.exists():
            logger.debug("%s already present at %s; skipping clone", url, target)
            return LocalRepository(reference_url=url, local_path=str(target), cloned=False)

        destination.mkdir(parents=True, exist_ok=True)
        args = ["git", "clone", "--quiet"]
        if branch:
            args.extend(["--branch", branch])
        args.extend([build_clone_url(url, username, token), str(target)])

        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
        )
        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout_s)
        except asyncio.TimeoutError as error:
            process.kill()
            await process.wait()
            raise CloneError(f"git clone timed out after {timeout_s}s") from error
        if process.returncode != 0:
            message = redact(stderr.decode("utf-8", "replace").strip())
            raise CloneError(f"git clone exited with {process.returncode}: {message}")
    except (CloneError, OSError) as error:
        logger.warning("Clone of %s failed: %s", url, error)
        return LocalRepository(reference_url=url, local_path="", cloned=False, error=str(error))

    logger.info("Cloned %s into %s", url, target)
    return LocalRepository(reference_url=url, local_path=str(target), cloned=True)


async def clone_repositories(
    urls: Sequence[str],
    destination: Path,
    username: str,
    token: Optional[str] = None,
    *,
    concurrency: int = 4,
    branch: Optional[str] = None,
    host: str = "github.com",
    timeout_s: Optional[float] = None,
) -> List[LocalRepository]:
    """Clone every URL with at most ``concurrency`` git processes in flight.

    The result is aligned with ``urls``; failures appear as entries with an
    empty ``local_path``.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _one(url: str) -> LocalRepository:
        async with semaphore:
            return await clone_repository(
                url, destination, username, token, branch=branch, host=host, timeout_s=timeout_s
            )

    return list(await asyncio.gather(*[_one(url) for url in urls]))


def usable_paths(repositories: Iterable[LocalRepository]) -> List[Path]:
    paths: List[Path] = []
    for repository in repositories:
        if not repository.local_path:
            continue
        path = Path(repository.local_path)
        if path.is_dir():
            paths.append(path)
    return paths
