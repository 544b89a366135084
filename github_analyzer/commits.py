from __future__ import annotations

import subprocess
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import CommitLogError
from .logging import get_logger
from .models import CommitAggregate, CommitRecord

logger = get_logger("commits")

_GIT_ISO_FORMAT = "%Y-%m-%d %H:%M:%S %z"


def run_git(args: list[str], cwd: Path, timeout_s: int = 300) -> tuple[int, str, str]:
    proc = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        timeout=timeout_s,
    )
    return proc.returncode, proc.stdout, proc.stderr


def read_commit_dates(repo_path: Path) -> List[str]:
    """Committer dates of every non-merge commit, one string per commit."""
    try:
        code, out, err = run_git(["log", "--no-merges", "--date=iso", "--pretty=format:%cd"], cwd=repo_path)
    except (OSError, subprocess.SubprocessError) as error:
        raise CommitLogError(f"git log could not run in {repo_path}: {error}") from error
    if code != 0:
        raise CommitLogError(f"git log failed in {repo_path}: {err.strip()}")
    return [line.strip() for line in out.splitlines() if line.strip()]


def parse_commit_date(text: str) -> Optional[datetime]:
    value = (text or "").strip()
    if not value:
        return None
    try:
        return datetime.strptime(value, _GIT_ISO_FORMAT)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def commit_record(moment: datetime) -> CommitRecord:
    iso_year, iso_week, iso_weekday = moment.isocalendar()
    return CommitRecord(
        timestamp=moment,
        weekday=iso_weekday % 7,
        iso_year=iso_year,
        iso_week=iso_week,
    )


def peak_weekday(commits_by_weekday: Sequence[int]) -> int:
    """Index of the busiest weekday; ties go to the earliest index (Sunday first)."""
    best_index = 0
    best_count = 0
    for index, count in enumerate(commits_by_weekday):
        if count > best_count:
            best_count = count
            best_index = index
    return best_index


def aggregate_commit_dates(date_lines: Iterable[str]) -> CommitAggregate:
    """Fold raw log lines into an aggregate.

    Every line counts towards ``total_commits``; lines whose date cannot be
    parsed are left out of the weekday histogram and active weeks and are
    tallied in ``unparseable_dates`` instead.
    """
    aggregate = CommitAggregate()
    weeks: set[Tuple[int, int]] = set()
    _fold(aggregate, weeks, date_lines)
    _finalise(aggregate, weeks)
    return aggregate


def aggregate_commits(repo_paths: Iterable[Path]) -> CommitAggregate:
    """Commit statistics across repositories, one ``git log`` at a time."""
    aggregate = CommitAggregate()
    weeks: set[Tuple[int, int]] = set()
    for repo_path in repo_paths:
        try:
            lines = read_commit_dates(Path(repo_path))
        except CommitLogError as error:
            logger.warning("%s", error)
            aggregate.failed_repository_paths.append(str(repo_path))
            continue
        _fold(aggregate, weeks, lines)
        logger.debug("%s: %d commits", repo_path, len(lines))
    _finalise(aggregate, weeks)
    logger.info(
        "Commit analysis: %d commits over %d active weeks, %d repositories failed",
        aggregate.total_commits,
        aggregate.active_weeks,
        len(aggregate.failed_repository_paths),
    )
    return aggregate


def _fold(aggregate: CommitAggregate, weeks: set[Tuple[int, int]], lines: Iterable[str]) -> None:
    for line in lines:
        aggregate.total_commits += 1
        moment = parse_commit_date(line)
        if moment is None:
            aggregate.unparseable_dates += 1
            continue
        record = commit_record(moment)
        aggregate.commits_by_weekday[record.weekday] += 1
        weeks.add((record.iso_year, record.iso_week))


def _finalise(aggregate: CommitAggregate, weeks: set[Tuple[int, int]]) -> None:
    aggregate.active_weeks = len(weeks)
    aggregate.average_commits_per_week = aggregate.total_commits / max(aggregate.active_weeks, 1)
    aggregate.peak_weekday = peak_weekday(aggregate.commits_by_weekday)
