from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .errors import LanguageToolError
from .logging import get_logger
from .models import LanguageAggregate, LanguageStats, RepositoryLanguageReport

logger = get_logger("languages")

TOKEI = "tokei"

EXCLUDE_PATTERNS = [
    "**/.git/**",
    "**/.gitignore",
    "**/package-lock.json",
    "**/yarn.lock",
    "**/pnpm-lock.yaml",
    "**/poetry.lock",
    "**/Cargo.lock",
    "**/node_modules/**",
    "**/vendor/**",
    "**/dist/**",
    "**/build/**",
    "**/.idea/**",
    "**/.vscode/**",
    "**/*.svg",
    "**/*.png",
    "**/*.jpg",
    "**/*.jpeg",
    "**/*.gif",
    "**/*.ico",
    "**/*.lock",
    "**/*.log",
    "**/.DS_Store",
    "**/coverage/**",
    "**/target/**",
    "**/out/**",
    "**/*.exe",
    "**/*.dll",
]


def tokei_available(executable: str = TOKEI) -> bool:
    return shutil.which(executable) is not None


def run_tokei(repo_path: Path, executable: str = TOKEI, timeout_s: int = 300) -> Dict[str, Any]:
    args = [executable, "--output", "json"]
    for pattern in EXCLUDE_PATTERNS:
        args.extend(["--exclude", pattern])
    try:
        proc = subprocess.run(args, cwd=str(repo_path), capture_output=True, text=True, timeout=timeout_s)
    except (OSError, subprocess.SubprocessError) as error:
        raise LanguageToolError(f"{executable} could not run in {repo_path}: {error}") from error
    if proc.returncode != 0:
        raise LanguageToolError(f"{executable} failed in {repo_path}: {proc.stderr.strip()}")
    if proc.stderr.strip():
        logger.debug("%s stderr for %s: %s", executable, repo_path, proc.stderr.strip())
    try:
        payload = json.loads(proc.stdout or "{}")
    except json.JSONDecodeError as error:
        raise LanguageToolError(f"Unreadable {executable} output for {repo_path}: {error.msg}") from error
    if not isinstance(payload, dict):
        raise LanguageToolError(f"Unexpected {executable} output for {repo_path}")
    return payload


def parse_tokei_output(repo_path: str, payload: Dict[str, Any]) -> RepositoryLanguageReport:
    """Per-language counters; tokei's own ``Total`` entry is recomputed, not trusted."""
    report = RepositoryLanguageReport(path=repo_path)
    for language, data in payload.items():
        if language == "Total" or not isinstance(data, dict):
            continue
        code = int(data.get("code", 0))
        comments = int(data.get("comments", 0))
        blanks = int(data.get("blanks", 0))
        stats = LanguageStats(
            files=int(data.get("files", len(data.get("reports") or ()))),
            lines=int(data.get("lines", code + comments + blanks)),
            code=code,
            comments=comments,
            blanks=blanks,
        )
        report.languages[language] = stats
        report.total.add(stats)
    return report


def analyze_repository(repo_path: Path, executable: str = TOKEI) -> Optional[RepositoryLanguageReport]:
    try:
        payload = run_tokei(repo_path, executable)
    except LanguageToolError as error:
        logger.error("%s", error)
        return None
    report = parse_tokei_output(str(repo_path), payload)
    logger.debug(
        "%s: %d languages, %d code lines, comment ratio %.2f",
        repo_path,
        len(report.languages),
        report.total.code,
        report.comment_ratio,
    )
    return report


def summarise_reports(reports: Iterable[RepositoryLanguageReport]) -> LanguageAggregate:
    aggregate = LanguageAggregate()
    for report in reports:
        aggregate.repositories.append(report)
        for language, stats in report.languages.items():
            aggregate.totals.setdefault(language, LanguageStats()).add(stats)

    max_code = 0
    for language, stats in aggregate.totals.items():
        if stats.code > max_code:
            max_code = stats.code
            aggregate.most_common_language = language

    total_code = sum(stats.code for stats in aggregate.totals.values())
    if total_code:
        for language, stats in aggregate.totals.items():
            aggregate.language_distribution[language] = f"{stats.code / total_code * 100:.2f}%"
    return aggregate


def aggregate_languages(repo_paths: Iterable[Path], executable: str = TOKEI) -> LanguageAggregate:
    """Lines of code by language across repositories, one tokei run at a time."""
    if not tokei_available(executable):
        logger.error("%s is not installed; skipping language statistics (cargo install tokei)", executable)
        return LanguageAggregate()

    reports: List[RepositoryLanguageReport] = []
    failed: List[str] = []
    for repo_path in repo_paths:
        report = analyze_repository(Path(repo_path), executable)
        if report is None:
            failed.append(str(repo_path))
        else:
            reports.append(report)

    aggregate = summarise_reports(reports)
    aggregate.failed_repository_paths = failed
    logger.info(
        "Language analysis: %d languages across %d repositories, most common %s",
        len(aggregate.totals),
        len(reports),
        aggregate.most_common_language or "n/a",
    )
    return aggregate
