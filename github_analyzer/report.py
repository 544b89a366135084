from __future__ import annotations

import shutil
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import yaml

from .errors import InsightParseError, ReportAssemblyError
from .logging import get_logger
from .models import CommitAggregate, LanguageAggregate, Recommendation, StructuredInsight, SummaryResult, UserProfile
from .summarizer import merge_insights, parse_structured_insight

logger = get_logger("report")


def parse_insight_json(text: str) -> StructuredInsight:
    try:
        return parse_structured_insight(text)
    except InsightParseError as error:
        raise ReportAssemblyError(f"Combined insights could not be parsed: {error}") from error


def resolve_insight(summary: SummaryResult, *, strict: bool = True) -> StructuredInsight:
    """The merged structured insight a report is built from.

    In strict mode an unreadable merged answer aborts the report; otherwise
    the per-repository insights are merged locally instead.
    """
    if not summary.combined_insight_text.strip():
        return merge_insights(item.structured_insight for item in summary.insights if item.structured_insight)
    try:
        return parse_insight_json(summary.combined_insight_text)
    except ReportAssemblyError:
        if strict:
            raise
        logger.warning("Merged insights unreadable; falling back to a local merge")
        return merge_insights(item.structured_insight for item in summary.insights if item.structured_insight)


def assemble_report(
    username: str,
    total_repositories: int,
    commits: CommitAggregate,
    languages: LanguageAggregate,
    summary: SummaryResult,
    *,
    private: bool = False,
    strict: bool = True,
    analysis_date: Optional[date] = None,
    profile: Optional[UserProfile] = None,
) -> Dict[str, Any]:
    insight = resolve_insight(summary, strict=strict)
    identifiers = insight.personal_identifiers
    body: Dict[str, Any] = {
        "github_username": username,
        "analysis_date": (analysis_date or date.today()).isoformat(),
        "total_repositories": total_repositories,
        "user_profile": profile.to_dict() if profile else {},
        "overall_languages": {
            "most_common_language": languages.most_common_language,
            "language_distribution": dict(languages.language_distribution),
        },
        "technical_insights": {
            "frameworks": insight.frameworks,
            "package_managers": insight.package_managers,
            "build_tools": insight.build_tools,
            "testing_tools": insight.testing_tools,
            "has_tests": insight.has_tests,
            "ci_cd": insight.ci_cd,
            "containerization": insight.containerization,
            "favorite_architecture": insight.favorite_architecture,
            "infra_as_code": insight.infra_as_code,
            "security": insight.security or [],
            "documentation_quality": insight.documentation_quality or [],
        },
        "commit_analysis": {
            "total_commits": commits.total_commits,
            "active_weeks": commits.active_weeks,
            "average_commits_per_week": round(commits.average_commits_per_week, 2),
            "commits_by_weekday": commits.by_weekday_name(),
            "peak_commit_day": commits.peak_weekday_name,
        },
        "topics_detected": insight.topics_detected,
        "personal_identifiers_found": {
            "usernames": identifiers.usernames,
            "emails": identifiers.emails,
            "names": identifiers.names,
            "urls": identifiers.urls,
            "jobs": identifiers.jobs,
            "other": identifiers.other,
        },
        "repository_summaries": summary.combined_narrative,
    }
    return {"private" if private else "public": body}


def report_body(report: Dict[str, Any]) -> Dict[str, Any]:
    """The section under ``public`` or ``private``, or the mapping itself when unkeyed."""
    return report.get("public") or report.get("private") or report


def attach_recommendations(report: Dict[str, Any], recommendations: Sequence[Recommendation]) -> None:
    report_body(report)["recommendations"] = [item.to_dict() for item in recommendations]


def _is_empty(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value == 0:
        return True
    return isinstance(value, (list, tuple, dict)) and len(value) == 0


def prune_empty(value: Any) -> Any:
    """Recursively drop None, False, zero, empty lists and empty mappings.

    Returns None when nothing survives. Empty strings and True are kept.
    """
    if isinstance(value, dict):
        pruned = {}
        for key, item in value.items():
            cleaned = prune_empty(item)
            if not _is_empty(cleaned):
                pruned[key] = cleaned
        return pruned or None
    if isinstance(value, (list, tuple)):
        items = [prune_empty(item) for item in value]
        kept = [item for item in items if not _is_empty(item)]
        return kept or None
    if _is_empty(value):
        return None
    return value


def render_yaml(report: Dict[str, Any]) -> str:
    cleaned = prune_empty(report) or {}
    return yaml.safe_dump(cleaned, allow_unicode=True, sort_keys=False, width=float("inf"))


def write_report(report: Dict[str, Any], username: str, directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    report_path = directory / f"{username}_result.yaml"
    report_path.write_text(render_yaml(report), encoding="utf-8")
    logger.info("Report written to %s", report_path)
    return report_path


def cleanup_repositories(paths: Iterable[str | Path]) -> List[Path]:
    """Delete cloned repositories; entries that are gone or empty are skipped."""
    removed: List[Path] = []
    for entry in paths:
        if not entry:
            continue
        path = Path(entry)
        if not path.exists():
            continue
        try:
            shutil.rmtree(path)
        except OSError as error:
            logger.warning("Failed to delete %s: %s", path, error)
            continue
        removed.append(path)
    logger.debug("Removed %d cloned repositories", len(removed))
    return removed
