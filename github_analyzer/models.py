from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


@dataclass(frozen=True, slots=True)
class RepositoryReference:
    url: str
    owner: str
    name: str
    description: Optional[str] = None
    language: Optional[str] = None
    stars: int = 0
    forks: int = 0
    open_issues: int = 0
    size_kb: int = 0
    topics: tuple[str, ...] = ()
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    pushed_at: Optional[str] = None
    has_issues: bool = False
    has_projects: bool = False
    has_wiki: bool = False
    has_discussions: bool = False

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "RepositoryReference":
        owner = (payload.get("owner") or {}).get("login", "")
        return cls(
            url=str(payload.get("html_url", "")),
            owner=str(owner),
            name=str(payload.get("name", "")),
            description=payload.get("description"),
            language=payload.get("language"),
            stars=int(payload.get("stargazers_count") or 0),
            forks=int(payload.get("forks_count") or 0),
            open_issues=int(payload.get("open_issues_count") or 0),
            size_kb=int(payload.get("size") or 0),
            topics=tuple(payload.get("topics") or ()),
            created_at=payload.get("created_at"),
            updated_at=payload.get("updated_at"),
            pushed_at=payload.get("pushed_at"),
            has_issues=bool(payload.get("has_issues")),
            has_projects=bool(payload.get("has_projects")),
            has_wiki=bool(payload.get("has_wiki")),
            has_discussions=bool(payload.get("has_discussions")),
        )


@dataclass(frozen=True, slots=True)
class UserProfile:
    username: str
    name: str = ""
    bio: str = ""
    location: str = ""
    company: str = ""
    blog: str = ""
    followers: int = 0
    following: int = 0
    public_repos: int = 0

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "UserProfile":
        login = str(payload.get("login") or "")
        return cls(
            username=login,
            name=str(payload.get("name") or login),
            bio=str(payload.get("bio") or ""),
            location=str(payload.get("location") or ""),
            company=str(payload.get("company") or ""),
            blog=str(payload.get("blog") or ""),
            followers=int(payload.get("followers") or 0),
            following=int(payload.get("following") or 0),
            public_repos=int(payload.get("public_repos") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class Recommendation:
    username: str
    name: str
    reason: str
    compatibility_score: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ListingResult:
    success: bool
    message: str
    profile_url: str
    repository_urls: List[str] = field(default_factory=list)
    fork_count: int = 0
    repositories: List[RepositoryReference] = field(default_factory=list)


@dataclass(slots=True)
class LocalRepository:
    reference_url: str
    local_path: str
    cloned: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return bool(self.local_path)


@dataclass(frozen=True, slots=True)
class CommitRecord:
    timestamp: datetime
    weekday: int
    iso_year: int
    iso_week: int


@dataclass(slots=True)
class CommitAggregate:
    total_commits: int = 0
    active_weeks: int = 0
    commits_by_weekday: List[int] = field(default_factory=lambda: [0] * 7)
    peak_weekday: int = 0
    average_commits_per_week: float = 0.0
    unparseable_dates: int = 0
    failed_repository_paths: List[str] = field(default_factory=list)

    @property
    def peak_weekday_name(self) -> str:
        return WEEKDAY_NAMES[self.peak_weekday]

    def by_weekday_name(self) -> Dict[str, int]:
        return dict(zip(WEEKDAY_NAMES, self.commits_by_weekday))


@dataclass(slots=True)
class LanguageStats:
    files: int = 0
    lines: int = 0
    code: int = 0
    comments: int = 0
    blanks: int = 0

    @property
    def complexity(self) -> float:
        return round(self.comments / (self.code or 1), 2)

    def add(self, other: "LanguageStats") -> None:
        self.files += other.files
        self.lines += other.lines
        self.code += other.code
        self.comments += other.comments
        self.blanks += other.blanks


@dataclass(slots=True)
class RepositoryLanguageReport:
    path: str
    languages: Dict[str, LanguageStats] = field(default_factory=dict)
    total: LanguageStats = field(default_factory=LanguageStats)

    @property
    def comment_ratio(self) -> float:
        return self.total.complexity


@dataclass(slots=True)
class LanguageAggregate:
    totals: Dict[str, LanguageStats] = field(default_factory=dict)
    most_common_language: str = ""
    language_distribution: Dict[str, str] = field(default_factory=dict)
    repositories: List[RepositoryLanguageReport] = field(default_factory=list)
    failed_repository_paths: List[str] = field(default_factory=list)


@dataclass(slots=True)
class PersonalIdentifiers:
    usernames: List[str] = field(default_factory=list)
    emails: List[str] = field(default_factory=list)
    names: List[str] = field(default_factory=list)
    urls: List[str] = field(default_factory=list)
    jobs: List[str] = field(default_factory=list)
    other: List[str] = field(default_factory=list)


@dataclass(slots=True)
class StructuredInsight:
    frameworks: List[str] = field(default_factory=list)
    package_managers: List[str] = field(default_factory=list)
    build_tools: List[str] = field(default_factory=list)
    testing_tools: List[str] = field(default_factory=list)
    has_tests: bool = False
    ci_cd: List[str] = field(default_factory=list)
    containerization: List[str] = field(default_factory=list)
    favorite_architecture: List[str] = field(default_factory=list)
    infra_as_code: List[str] = field(default_factory=list)
    security: str = ""
    documentation_quality: str = ""
    topics_detected: List[str] = field(default_factory=list)
    personal_identifiers: PersonalIdentifiers = field(default_factory=PersonalIdentifiers)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class RepositoryInsight:
    path: str
    source: str
    narrative_summary: str
    structured_insight: Optional[StructuredInsight] = None
    error: Optional[str] = None


@dataclass(slots=True)
class SummaryResult:
    insights: List[RepositoryInsight] = field(default_factory=list)
    combined_narrative: str = ""
    combined_insight_text: str = ""


@dataclass(slots=True)
class AnalysisResult:
    username: str
    report: Dict[str, Any]
    report_path: Optional[Path]
    listing: ListingResult
    repositories: List[LocalRepository] = field(default_factory=list)
    profile: Optional[UserProfile] = None
    recommendations: List[Recommendation] = field(default_factory=list)
