from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import List, Optional, Protocol, Sequence

from .config import LLMConfig
from .errors import LLMUnavailableError
from .logging import get_logger

logger = get_logger("llm")

_CODE_FENCE = re.compile(r"```(?:json)?\s*|\s*```")
AUTO_GENERATED_MARKER = "Auto-generated"

INSIGHT_SCHEMA = """{
  "technicalInsights": {
    "frameworks": ["detected frameworks, e.g. React, Flask, Spring Boot"],
    "packageManagers": ["e.g. npm, pipenv, bundler"],
    "buildTools": ["e.g. webpack, gradle, make"],
    "testingTools": ["e.g. jest, pytest, mocha, RSpec"],
    "hasTests": true,
    "ciCd": ["e.g. GitHub Actions, CircleCI, judged from .github/workflows/ or .circleci/"],
    "containerization": ["e.g. Docker, Kubernetes"],
    "favorite_architecture": ["e.g. clean architecture, monolith, microservices"],
    "infraAsCode": ["IaC tools such as Terraform or Ansible"],
    "security": "security awareness: policy files, secrets handling, .env kept out of git",
    "documentation_quality": "how detailed and useful the documentation is"
  },
  "topicsDetected": ["key topics, e.g. Web development, CLI tools, Machine learning"],
  "personalIdentifiersFound": {
    "usernames": [],
    "emails": [],
    "names": [],
    "urls": [],
    "jobs": [],
    "other": []
  }
}"""


class TextModel(Protocol):
    def complete(self, prompt: str, *, system: Optional[str] = None) -> str: ...


class OpenAIClient:
    """Thin wrapper over the OpenAI Responses API."""

    def __init__(self, config: LLMConfig, client: object | None = None) -> None:
        self.config = config
        if client is None:
            api_key = os.getenv(config.api_key_env)
            if not api_key:
                raise LLMUnavailableError(f"missing {config.api_key_env}")
            from openai import OpenAI  # type: ignore

            client = OpenAI(api_key=api_key, organization=config.organization)
        self._client = client

    @classmethod
    def from_config(cls, config: LLMConfig) -> Optional["OpenAIClient"]:
        if config.provider.lower() != "openai":
            logger.warning("Unsupported LLM provider %s; continuing without a model", config.provider)
            return None
        try:
            return cls(config)
        except LLMUnavailableError as error:
            logger.warning("LLM disabled: %s", error)
            return None

    def complete(self, prompt: str, *, system: Optional[str] = None) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        response = self._client.responses.create(
            model=self.config.model,
            input=messages,
            max_output_tokens=self.config.max_output_tokens,
            temperature=self.config.temperature,
        )
        text = (response.output_text or "").strip()
        logger.debug("LLM response: %s ...", text[:200])
        return text


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE.sub("", text or "").strip()


@dataclass(slots=True)
class ReadmeVerdict:
    human_authored: bool
    summary: str
    confidence: float


class ReadmeJudge:
    """Decides whether a README reads as hand-written and summarises it if so."""

    def __init__(self, llm: TextModel) -> None:
        self.llm = llm

    def classify(self, readme: str, file_tree: str) -> ReadmeVerdict:
        prompt = (
            "Review the README below. If a developer wrote it by hand, give a concise English summary of "
            "the developer, their areas of expertise, the features and the technology stack, without naming "
            "specific variables or functions.\n"
            f'If it was not written by hand, reply with "{AUTO_GENERATED_MARKER}" only.\n'
            "Use the file structure as corroborating evidence: a README that does not match it is likely "
            "generated.\n\n"
            f"File structure:\n{file_tree}\n\n---\n{readme}\n---"
        )
        answer = self.llm.complete(prompt).strip()
        return parse_readme_verdict(answer)


def parse_readme_verdict(answer: str) -> ReadmeVerdict:
    text = (answer or "").strip()
    if not text:
        # nothing to summarise from; the file branch takes over
        return ReadmeVerdict(human_authored=False, summary="", confidence=0.0)
    flagged = AUTO_GENERATED_MARKER.lower() in text.lower()
    if not flagged:
        return ReadmeVerdict(human_authored=True, summary=text, confidence=1.0)
    if len(text) > 100:
        # a long answer that still mentions the marker is treated as a summary
        return ReadmeVerdict(human_authored=True, summary=text, confidence=0.5)
    return ReadmeVerdict(human_authored=False, summary="", confidence=1.0)


class FileSelector:
    """Picks the developer-authored, architecturally significant files of a repository."""

    def __init__(self, llm: Optional[TextModel]) -> None:
        self.llm = llm

    def rank(self, files: Sequence[str], limit: int = 20) -> List[str]:
        if not files:
            return []
        if self.llm is None:
            return heuristic_file_selection(files, limit)
        prompt = (
            "The following is the file list of a repository.\n\n"
            f"Select up to {limit} files that were most likely written by the developer and matter most for "
            "functionality or architecture: files with information about the developer, core application "
            "logic, custom business logic, routing and key UI components.\n"
            "Exclude dependency manifests, configuration, templates, static assets and generated files. "
            "Do not include README.md.\n\n"
            'Answer only with JSON of the form {"files": ["relative/path1", "relative/path2"]}.\n\n'
            "File structure:\n" + "\n".join(files)
        )
        answer = self.llm.complete(prompt)
        try:
            chosen = parse_file_selection(answer)
        except ValueError as error:
            logger.warning("File selection answer rejected (%s); using heuristic selection", error)
            return heuristic_file_selection(files, limit)
        known = set(files)
        selected: List[str] = []
        for path in chosen:
            normalised = path.strip().removeprefix("./")
            if normalised in known and not _is_readme(normalised) and normalised not in selected:
                selected.append(normalised)
            if len(selected) >= limit:
                break
        if not selected:
            logger.warning("File selection named no usable files; using heuristic selection")
            return heuristic_file_selection(files, limit)
        return selected


def parse_file_selection(answer: str) -> List[str]:
    try:
        payload = json.loads(strip_code_fences(answer))
    except json.JSONDecodeError as error:
        raise ValueError(f"not JSON: {error.msg}") from error
    if not isinstance(payload, dict) or not isinstance(payload.get("files"), list):
        raise ValueError('expected an object with a "files" list')
    return [item for item in payload["files"] if isinstance(item, str)]


_SOURCE_SUFFIXES = {
    ".py", ".js", ".jsx", ".ts", ".tsx", ".go", ".rs", ".java", ".kt", ".rb", ".php", ".c", ".cc",
    ".cpp", ".h", ".hpp", ".cs", ".swift", ".scala", ".vue", ".svelte", ".dart", ".ex", ".exs", ".hs",
    ".lua", ".sh", ".sql",
}
_SKIPPED_NAMES = {"setup.py", "conftest.py", "__init__.py", "manage.py"}


def heuristic_file_selection(files: Sequence[str], limit: int = 20) -> List[str]:
    """Deterministic stand-in for the model: shallow source files first."""
    candidates = []
    for path in files:
        pure = PurePosixPath(path)
        if pure.suffix.lower() not in _SOURCE_SUFFIXES or pure.name in _SKIPPED_NAMES:
            continue
        if any(part.startswith(".") for part in pure.parts[:-1]):
            continue
        if ".min." in pure.name or "test" in pure.name.lower():
            continue
        candidates.append(path)
    candidates.sort(key=lambda item: (len(PurePosixPath(item).parts), item))
    return candidates[:limit]


def _is_readme(path: str) -> bool:
    return PurePosixPath(path).name.lower().startswith("readme")


class RepositoryRanker:
    """Asks the model which repositories say the most about their owner."""

    def __init__(self, llm: TextModel) -> None:
        self.llm = llm

    def rank(self, descriptions: str, limit: int) -> str:
        prompt = (
            "Below is a list of GitHub repositories. Select up to "
            f"{limit} repositories that best reflect the owner's profile, technical skill level and activity.\n"
            "Output only the URLs of the selected repositories as a plain-text bullet list.\n\n"
            f"{descriptions}"
        )
        return self.llm.complete(prompt)


class DeveloperRecommender:
    """Asks the model for developers whose work complements an analysed account."""

    def __init__(self, llm: TextModel) -> None:
        self.llm = llm

    def recommend(self, profile_json: str, limit: int = 10) -> str:
        prompt = (
            f"Analyze this GitHub developer profile and recommend {limit} real GitHub users who would be good "
            "matches for collaboration or networking: similar tech stacks, complementary skills, shared topics "
            "and active contributors.\n"
            'Answer only with a JSON array of objects with the keys "username", "name", "reason" (one or two '
            'sentences) and "compatibility_score" (0 to 100).\n\n'
            f"Profile:\n{profile_json}"
        )
        return self.llm.complete(prompt)
