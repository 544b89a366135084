from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass(frozen=True, slots=True)
class StoredReport:
    username: str
    report: Dict[str, Any]
    created_at: datetime


class ReportStore:
    """Process-local map of account name to its latest report.

    Contents live only as long as the process; nothing is persisted.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reports: Dict[str, StoredReport] = {}

    def put(self, username: str, report: Dict[str, Any], created_at: Optional[datetime] = None) -> StoredReport:
        entry = StoredReport(
            username=username,
            report=report,
            created_at=created_at or datetime.now(timezone.utc),
        )
        with self._lock:
            self._reports[username.lower()] = entry
        return entry

    def get(self, username: str) -> Optional[StoredReport]:
        with self._lock:
            return self._reports.get(username.lower())

    def list(self) -> List[StoredReport]:
        with self._lock:
            entries = list(self._reports.values())
        return sorted(entries, key=lambda entry: entry.created_at, reverse=True)

    def remove(self, username: str) -> bool:
        with self._lock:
            return self._reports.pop(username.lower(), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._reports.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._reports)

    def __contains__(self, username: object) -> bool:
        if not isinstance(username, str):
            return False
        with self._lock:
            return username.lower() in self._reports


def fake_report(username: str, analysis_date: Optional[date] = None) -> Dict[str, Any]:
    """Deterministic sample report used to seed the store in tests."""
    return {
        "public": {
            "github_username": username,
            "analysis_date": (analysis_date or date.today()).isoformat(),
            "total_repositories": 3,
            "overall_languages": {
                "most_common_language": "Python",
                "language_distribution": {"Python": "72.50%", "TypeScript": "27.50%"},
            },
            "technical_insights": {
                "frameworks": ["FastAPI", "React"],
                "package_managers": ["pip", "npm"],
                "testing_tools": ["pytest"],
                "has_tests": True,
                "ci_cd": ["GitHub Actions"],
            },
            "commit_analysis": {
                "total_commits": 42,
                "active_weeks": 6,
                "average_commits_per_week": 7.0,
                "commits_by_weekday": {
                    "Sunday": 2,
                    "Monday": 10,
                    "Tuesday": 9,
                    "Wednesday": 8,
                    "Thursday": 7,
                    "Friday": 5,
                    "Saturday": 1,
                },
                "peak_commit_day": "Monday",
            },
            "topics_detected": ["Web development", "CLI tools"],
            "repository_summaries": f"{username} builds Python web services and small TypeScript front ends.",
        }
    }
