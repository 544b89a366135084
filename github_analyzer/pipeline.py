"""End-to-end account analysis.

Stages run in a fixed order: list (alongside the profile lookup), clone, then
commit statistics, language statistics and summarisation side by side, then
report assembly and the optional recommendation pass. Per repository failures
degrade the report; stage failures propagate.
"""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path
from typing import Optional

from .cloner import clone_repositories, usable_paths
from .commits import aggregate_commits
from .config import AppConfig
from .languages import aggregate_languages
from .lister import fetch_user_profile, list_repositories, select_representative
from .llm import OpenAIClient, TextModel
from .logging import get_logger
from .models import AnalysisResult
from .recommend import recommend_developers
from .report import assemble_report, attach_recommendations, cleanup_repositories, prune_empty, report_body, write_report
from .store import ReportStore
from .summarizer import summarize_repositories

logger = get_logger("pipeline")

_DEFAULT_LLM = object()


async def run_analysis(
    username: str,
    config: AppConfig,
    *,
    token: Optional[str] = None,
    llm: Optional[TextModel] | object = _DEFAULT_LLM,
    store: Optional[ReportStore] = None,
    strict: bool = True,
    write: bool = True,
) -> AnalysisResult:
    if llm is _DEFAULT_LLM:
        llm = OpenAIClient.from_config(config.llm)

    listing, profile = await asyncio.gather(
        asyncio.to_thread(list_repositories, username, config, token),
        asyncio.to_thread(fetch_user_profile, username, config, token),
    )
    urls = list(listing.repository_urls)
    if config.selection.representative_only and listing.repositories:
        urls = await asyncio.to_thread(
            select_representative,
            username,
            listing.repositories,
            llm,
            config.selection.representative_limit,
            config.github.host,
        )
    logger.info("Analysing %d repositories for %s", len(urls), username)

    config.clone.workspace.mkdir(parents=True, exist_ok=True)
    run_directory = Path(tempfile.mkdtemp(prefix=f"{username}-", dir=config.clone.workspace))
    repositories = []
    try:
        repositories = await clone_repositories(
            urls,
            run_directory,
            username,
            token,
            concurrency=config.clone.concurrency,
            branch=config.clone.branch,
            host=config.github.host,
            timeout_s=config.clone.timeout_s,
        )
        paths = usable_paths(repositories)
        logger.info("%d of %d repositories available locally", len(paths), len(urls))

        commits, languages, summary = await asyncio.gather(
            asyncio.to_thread(aggregate_commits, paths),
            asyncio.to_thread(aggregate_languages, paths),
            asyncio.to_thread(summarize_repositories, paths, llm, config.analysis),
        )

        report = assemble_report(
            username,
            len(urls),
            commits,
            languages,
            summary,
            private=bool(token),
            strict=strict,
            profile=profile,
        )
    finally:
        if not config.output.keep_clones:
            await asyncio.to_thread(
                cleanup_repositories,
                [*(repository.local_path for repository in repositories), run_directory],
            )

    recommendations = []
    if config.recommendations.enabled:
        recommendations = await asyncio.to_thread(
            recommend_developers, report_body(report), llm, config.recommendations.limit
        )
        attach_recommendations(report, recommendations)

    report_path = None
    if write:
        report_path = await asyncio.to_thread(write_report, report, username, config.output.directory)

    if store is not None:
        store.put(username, prune_empty(report) or {})
    return AnalysisResult(
        username=username,
        report=report,
        report_path=report_path,
        listing=listing,
        repositories=repositories,
        profile=profile,
        recommendations=recommendations,
    )


def analyze(username: str, config: AppConfig, **kwargs) -> AnalysisResult:
    """Blocking wrapper around :func:`run_analysis`."""
    return asyncio.run(run_analysis(username, config, **kwargs))
