from __future__ import annotations

import json
import os
import re
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .config import AnalysisConfig
from .errors import InsightParseError, LLMUnavailableError
from .llm import INSIGHT_SCHEMA, FileSelector, ReadmeJudge, TextModel, strip_code_fences
from .logging import get_logger
from .models import PersonalIdentifiers, RepositoryInsight, StructuredInsight, SummaryResult

logger = get_logger("summarizer")

EXCLUDED_DIRS = {
    "node_modules", "dist", "build", "coverage", "out",
    ".next", ".turbo", ".cache", ".eslintcache", ".parcel-cache",
    "__pycache__", ".pytest_cache", ".mypy_cache",
    "target", ".gradle",
    "public", ".docusaurus", ".svelte-kit", ".vuepress", ".vitepress",
    ".git", ".hg", ".svn", ".idea", ".vscode",
    ".nyc_output", ".coverage", "reports", "test-results",
}
README_CANDIDATES = ("README.md", "Readme.md", "readme.md", "README.markdown", "README.rst", "README")
README_KEYWORDS = ("install", "installation", "usage", "feature", "how to", "example")

_SECTION_HEADING = re.compile(r"^##\s+")
_BADGE = re.compile(r"\[!\[.+?\]\(.+?\)\]")
_LINK = re.compile(r"\[[^\]]+\]\([^)]+\)")
_PROFILE_HINTS = ("profile", "about", "resume", "cv", "bio")
_PROFILE_SUFFIXES = (".md", ".markdown", ".rst", ".txt")
_MAX_FILE_BYTES = 200_000


def score_readme(content: str) -> int:
    """Rate README richness on a 0-10 scale."""
    text = (content or "").strip()
    lines = [line.strip() for line in text.split("\n")]
    word_count = len(text.split())
    lowered = text.lower()

    score = 0
    if lines and lines[0].startswith("#"):
        score += 1
    section_count = sum(1 for line in lines if _SECTION_HEADING.match(line))
    if section_count >= 2:
        score += 2
    if text.count("```") >= 2:
        score += 2
    if any(keyword in lowered for keyword in README_KEYWORDS):
        score += 1
    if _BADGE.search(text):
        score += 1
    if len(_LINK.findall(text)) >= 3:
        score += 1

    if word_count < 100:
        score -= 2
    if len(lines) < 5:
        score -= 1
    if section_count == 0:
        score -= 1
    return max(0, min(score, 10))


def read_readme(repo_root: Path) -> str:
    for name in README_CANDIDATES:
        candidate = repo_root / name
        if candidate.is_file():
            return candidate.read_text(encoding="utf-8", errors="replace")
    return ""


def list_repository_files(repo_root: Path) -> List[str]:
    """Relative POSIX paths of every file, with build, cache and VCS directories pruned."""
    files: List[str] = []
    for dirpath, dirnames, filenames in os.walk(repo_root):
        dirnames[:] = sorted(name for name in dirnames if name not in EXCLUDED_DIRS)
        relative_dir = Path(dirpath).relative_to(repo_root)
        for filename in filenames:
            files.append((relative_dir / filename).as_posix())
    return sorted(files)


def chunk_text(text: str, size: int = 4000) -> List[str]:
    return [text[index : index + size] for index in range(0, len(text), size)]


def is_profile_style(relative_path: str) -> bool:
    name = PurePosixPath(relative_path).name.lower()
    if any(hint in name for hint in _PROFILE_HINTS):
        return True
    return name.endswith(_PROFILE_SUFFIXES)


def _chunk_prompt(chunk: str, profile_style: bool) -> str:
    if profile_style:
        instruction = (
            "The following is part of a profile or reference document. Give a detailed English summary "
            "focused on what it reveals about the author: background, skills, interests and contact points."
        )
    else:
        instruction = (
            "The following is part of a source file. Give a concise English summary of its purpose, "
            "content and functionality without mentioning specific variable or function names."
        )
    return f"{instruction}\n\n{chunk}"


def read_source_file(repo_root: Path, relative_path: str) -> Optional[str]:
    root = repo_root.resolve()
    target = (root / relative_path).resolve()
    if root not in target.parents or not target.is_file():
        logger.debug("Skipping %s: not a file inside %s", relative_path, root)
        return None
    if target.stat().st_size > _MAX_FILE_BYTES:
        logger.debug("Skipping %s: larger than %d bytes", relative_path, _MAX_FILE_BYTES)
        return None
    raw = target.read_bytes()
    if b"\x00" in raw[:1024]:
        return None
    return raw.decode("utf-8", errors="replace")


def summarize_file(repo_root: Path, relative_path: str, llm: TextModel, chunk_size: int = 4000) -> Optional[str]:
    content = read_source_file(repo_root, relative_path)
    if not content or not content.strip():
        return None
    profile_style = is_profile_style(relative_path)
    parts = [llm.complete(_chunk_prompt(chunk, profile_style)) for chunk in chunk_text(content, chunk_size)]
    return "\n".join(part for part in parts if part).strip()


def _sectioned(entries: Dict[str, str]) -> str:
    return "\n\n".join(f"■ {name}\n{text}" for name, text in entries.items())


def narrate_file_summaries(file_summaries: Dict[str, str], llm: TextModel) -> str:
    prompt = (
        "The following are summaries of several files from one repository. Describe in clear English what "
        "kind of application it is overall, how it is structured and which technologies it uses. Also "
        "summarise what it shows about the developer: strengths, areas of focus and technology stack. "
        "Do not mention specific variable or function names.\n\n" + _sectioned(file_summaries)
    )
    return llm.complete(prompt)


def extract_structured_insight(text: str, llm: TextModel) -> StructuredInsight:
    prompt = (
        "Based on the text below, extract technical insights, detected topics and personal identifiers. "
        "Respond only with JSON in exactly this format:\n"
        f"```json\n{INSIGHT_SCHEMA}\n```\n\n"
        "<-------------------------------------------------------------->\n" + text
    )
    return parse_structured_insight(llm.complete(prompt))


def parse_structured_insight(answer: str) -> StructuredInsight:
    cleaned = strip_code_fences(answer)
    if not cleaned:
        raise InsightParseError("empty structured-insight answer")
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as error:
        raise InsightParseError(f"structured insight is not valid JSON: {error.msg}") from error
    if not isinstance(payload, dict):
        raise InsightParseError("structured insight must be a JSON object")
    return insight_from_payload(payload)


def insight_from_payload(payload: Dict[str, Any]) -> StructuredInsight:
    technical = payload.get("technicalInsights") or {}
    identifiers = payload.get("personalIdentifiersFound") or {}
    if not isinstance(technical, dict):
        technical = {}
    if not isinstance(identifiers, dict):
        identifiers = {}
    return StructuredInsight(
        frameworks=_string_list(technical.get("frameworks")),
        package_managers=_string_list(technical.get("packageManagers")),
        build_tools=_string_list(technical.get("buildTools")),
        testing_tools=_string_list(technical.get("testingTools")),
        has_tests=_flag(technical.get("hasTests")),
        ci_cd=_string_list(technical.get("ciCd")),
        containerization=_string_list(technical.get("containerization")),
        favorite_architecture=_string_list(technical.get("favorite_architecture")),
        infra_as_code=_string_list(technical.get("infraAsCode")),
        security=_text(technical.get("security")),
        documentation_quality=_text(technical.get("documentation_quality")),
        topics_detected=_string_list(payload.get("topicsDetected")),
        personal_identifiers=PersonalIdentifiers(
            usernames=_string_list(identifiers.get("usernames")),
            emails=_string_list(identifiers.get("emails")),
            names=_string_list(identifiers.get("names")),
            urls=_string_list(identifiers.get("urls")),
            jobs=_string_list(identifiers.get("jobs")),
            other=_string_list(identifiers.get("other")),
        ),
    )


def insight_to_payload(insight: StructuredInsight) -> Dict[str, Any]:
    identifiers = insight.personal_identifiers
    return {
        "technicalInsights": {
            "frameworks": insight.frameworks,
            "packageManagers": insight.package_managers,
            "buildTools": insight.build_tools,
            "testingTools": insight.testing_tools,
            "hasTests": insight.has_tests,
            "ciCd": insight.ci_cd,
            "containerization": insight.containerization,
            "favorite_architecture": insight.favorite_architecture,
            "infraAsCode": insight.infra_as_code,
            "security": insight.security,
            "documentation_quality": insight.documentation_quality,
        },
        "topicsDetected": insight.topics_detected,
        "personalIdentifiersFound": {
            "usernames": identifiers.usernames,
            "emails": identifiers.emails,
            "names": identifiers.names,
            "urls": identifiers.urls,
            "jobs": identifiers.jobs,
            "other": identifiers.other,
        },
    }


def _string_list(value: Any) -> List[str]:
    if value is None or isinstance(value, bool):
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    return [str(value)]


def _flag(value: Any) -> bool:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else False
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _text(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return "; ".join(str(item).strip() for item in value if item is not None and str(item).strip())
    if value is None or isinstance(value, bool):
        return ""
    return str(value).strip()


def summarize_repository(
    repo_root: Path,
    llm: Optional[TextModel],
    config: Optional[AnalysisConfig] = None,
    *,
    judge: Optional[ReadmeJudge] = None,
    selector: Optional[FileSelector] = None,
) -> RepositoryInsight:
    """Narrative plus structured insight for one repository.

    A rich, hand-written README is summarised directly; otherwise the most
    significant source files are read and summarised. Any failure is folded
    into the returned insight rather than raised.
    """
    config = config or AnalysisConfig()
    path = str(repo_root)
    try:
        if llm is None:
            raise LLMUnavailableError("no language model configured")
        judge = judge or ReadmeJudge(llm)
        selector = selector or FileSelector(llm)
        files = list_repository_files(repo_root)

        readme = read_readme(repo_root)
        score = score_readme(readme)
        logger.debug("%s: README score %d", repo_root, score)
        if score >= config.readme_score_threshold:
            verdict = judge.classify(readme, "\n".join(files))
            if verdict.human_authored:
                structured = extract_structured_insight(verdict.summary, llm)
                logger.info("%s: summarised from README", repo_root)
                return RepositoryInsight(
                    path=path, source="readme", narrative_summary=verdict.summary, structured_insight=structured
                )

        selected = selector.rank(files, config.max_selected_files)
        file_summaries: Dict[str, str] = {}
        for relative_path in selected:
            summary = summarize_file(repo_root, relative_path, llm, config.chunk_size)
            if summary:
                file_summaries[relative_path] = summary
        logger.debug("%s: summarised %d of %d selected files", repo_root, len(file_summaries), len(selected))

        narrative = narrate_file_summaries(file_summaries, llm)
        structured = extract_structured_insight(_sectioned(file_summaries), llm)
        logger.info("%s: summarised from %d source files", repo_root, len(file_summaries))
        return RepositoryInsight(path=path, source="files", narrative_summary=narrative, structured_insight=structured)
    except Exception as error:
        message = f"Repository analysis failed: {error}"
        logger.warning("%s: %s", repo_root, message)
        return RepositoryInsight(path=path, source="error", narrative_summary=message, error=message)


def combine_narratives(insights: Sequence[RepositoryInsight], llm: TextModel) -> str:
    entries = {insight.path: insight.narrative_summary for insight in insights}
    prompt = (
        "The following are summaries of several repositories by one developer. Combine them into a single "
        "English overview: what the developer builds, how the projects are structured, which technologies "
        "they rely on, and their strengths and areas of focus. Remove duplication and do not mention "
        "specific variable or function names.\n\n"
        "<-------------------------------------------------------------->\n" + _sectioned(entries)
    )
    return llm.complete(prompt)


def combine_structured_insights(insights: Sequence[RepositoryInsight], llm: TextModel) -> str:
    entries: Dict[str, str] = {}
    for insight in insights:
        if insight.structured_insight is not None:
            entries[insight.path] = json.dumps(insight_to_payload(insight.structured_insight), ensure_ascii=False)
        else:
            entries[insight.path] = insight.error or insight.narrative_summary
    prompt = (
        "The following are JSON summaries extracted from different repositories, each with "
        '"technicalInsights", "topicsDetected" and "personalIdentifiersFound". Combine them into a single '
        "summary, removing duplicates.\n"
        f"Respond only with JSON in exactly this format:\n```json\n{INSIGHT_SCHEMA}\n```\n\n"
        "<-------------------------------------------------------------->\n" + _sectioned(entries)
    )
    return llm.complete(prompt)


def summarize_repositories(
    repo_paths: Iterable[Path],
    llm: Optional[TextModel],
    config: Optional[AnalysisConfig] = None,
) -> SummaryResult:
    result = SummaryResult()
    for repo_path in repo_paths:
        result.insights.append(summarize_repository(Path(repo_path), llm, config))
    if not result.insights or llm is None:
        return result
    result.combined_narrative = combine_narratives(result.insights, llm)
    result.combined_insight_text = combine_structured_insights(result.insights, llm)
    return result


def merge_insights(insights: Iterable[StructuredInsight]) -> StructuredInsight:
    """Deterministic union of several insights, de-duplicated case-insensitively in first-seen order."""
    merged = StructuredInsight()
    list_fields = (
        "frameworks", "package_managers", "build_tools", "testing_tools", "ci_cd",
        "containerization", "favorite_architecture", "infra_as_code", "topics_detected",
    )
    identifier_fields = ("usernames", "emails", "names", "urls", "jobs", "other")
    security: List[str] = []
    documentation: List[str] = []
    for insight in insights:
        for name in list_fields:
            _extend_unique(getattr(merged, name), getattr(insight, name))
        for name in identifier_fields:
            _extend_unique(getattr(merged.personal_identifiers, name), getattr(insight.personal_identifiers, name))
        merged.has_tests = merged.has_tests or insight.has_tests
        _extend_unique(security, [insight.security] if insight.security else [])
        _extend_unique(documentation, [insight.documentation_quality] if insight.documentation_quality else [])
    merged.security = "; ".join(security)
    merged.documentation_quality = "; ".join(documentation)
    return merged


def _extend_unique(target: List[str], values: Iterable[str]) -> None:
    seen = {item.lower() for item in target}
    for value in values:
        key = value.lower()
        if key not in seen:
            seen.add(key)
            target.append(value)
