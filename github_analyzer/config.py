from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError

DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


@dataclass(slots=True)
class GitHubConfig:
    api_root: str = "https://api.github.com"
    host: str = "github.com"
    user_agent: str = "github-analyzer/0.1"
    per_page: int = 100
    max_pages: int = 10
    token_env: str = "GITHUB_TOKEN"
    request_attempts: int = 1
    timeout_s: float = 30.0


@dataclass(slots=True)
class SelectionConfig:
    representative_only: bool = False
    representative_limit: int = 5


@dataclass(slots=True)
class RecommendationConfig:
    enabled: bool = False
    limit: int = 10


@dataclass(slots=True)
class CloneConfig:
    workspace: Path = Path("workspace")
    concurrency: int = 4
    timeout_s: float = 600.0
    branch: Optional[str] = None


@dataclass(slots=True)
class AnalysisConfig:
    readme_score_threshold: int = 7
    max_selected_files: int = 20
    chunk_size: int = 4000


@dataclass(slots=True)
class LLMConfig:
    provider: str = "openai"
    model: str = "gpt-4o-mini"
    temperature: float = 0.2
    max_output_tokens: int = 1200
    api_key_env: str = "OPENAI_API_KEY"
    organization: Optional[str] = None


@dataclass(slots=True)
class OutputConfig:
    directory: Path = Path("results")
    keep_clones: bool = False


@dataclass(slots=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8000
    enable_test_endpoints: bool = False


@dataclass(slots=True)
class LoggingConfig:
    verbose: bool = False
    log_file: Optional[Path] = None


@dataclass(slots=True)
class AppConfig:
    github: GitHubConfig = field(default_factory=GitHubConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    clone: CloneConfig = field(default_factory=CloneConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    recommendations: RecommendationConfig = field(default_factory=RecommendationConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: Optional[Path] = None) -> AppConfig:
    config_path = path or DEFAULT_CONFIG_PATH
    if not config_path.exists():
        return AppConfig()

    with config_path.open("r", encoding="utf-8") as handle:
        try:
            raw = yaml.safe_load(handle) or {}
        except yaml.YAMLError as error:
            raise ConfigError(f"Invalid YAML in {config_path}: {error}") from error

    if not isinstance(raw, dict):
        raise ConfigError(f"Expected a mapping at the top of {config_path}")

    github_raw = _section(raw, "github")
    selection_raw = _section(raw, "selection")
    clone_raw = _section(raw, "clone")
    analysis_raw = _section(raw, "analysis")
    recommendations_raw = _section(raw, "recommendations")
    llm_raw = _section(raw, "llm")
    output_raw = _section(raw, "output")
    server_raw = _section(raw, "server")
    logging_raw = _section(raw, "logging")

    defaults = AppConfig()
    try:
        config = AppConfig(
            github=GitHubConfig(
                api_root=str(github_raw.get("api_root", defaults.github.api_root)).rstrip("/"),
                host=str(github_raw.get("host", defaults.github.host)),
                user_agent=str(github_raw.get("user_agent", defaults.github.user_agent)),
                per_page=int(github_raw.get("per_page", defaults.github.per_page)),
                max_pages=int(github_raw.get("max_pages", defaults.github.max_pages)),
                token_env=str(github_raw.get("token_env", defaults.github.token_env)),
                request_attempts=max(1, int(github_raw.get("request_attempts", defaults.github.request_attempts))),
                timeout_s=float(github_raw.get("timeout_s", defaults.github.timeout_s)),
            ),
            selection=SelectionConfig(
                representative_only=bool(selection_raw.get("representative_only", False)),
                representative_limit=int(selection_raw.get("representative_limit", 5)),
            ),
            clone=CloneConfig(
                workspace=Path(clone_raw.get("workspace", "workspace")),
                concurrency=max(1, int(clone_raw.get("concurrency", 4))),
                timeout_s=float(clone_raw.get("timeout_s", 600.0)),
                branch=clone_raw.get("branch"),
            ),
            analysis=AnalysisConfig(
                readme_score_threshold=int(analysis_raw.get("readme_score_threshold", 7)),
                max_selected_files=int(analysis_raw.get("max_selected_files", 20)),
                chunk_size=max(1, int(analysis_raw.get("chunk_size", 4000))),
            ),
            recommendations=RecommendationConfig(
                enabled=bool(recommendations_raw.get("enabled", False)),
                limit=max(1, int(recommendations_raw.get("limit", 10))),
            ),
            llm=LLMConfig(
                provider=str(llm_raw.get("provider", "openai")),
                model=str(llm_raw.get("model", "gpt-4o-mini")),
                temperature=float(llm_raw.get("temperature", 0.2)),
                max_output_tokens=int(llm_raw.get("max_output_tokens", 1200)),
                api_key_env=str(llm_raw.get("api_key_env", "OPENAI_API_KEY")),
                organization=llm_raw.get("organization"),
            ),
            output=OutputConfig(
                directory=Path(output_raw.get("directory", "results")),
                keep_clones=bool(output_raw.get("keep_clones", False)),
            ),
            server=ServerConfig(
                host=str(server_raw.get("host", "127.0.0.1")),
                port=int(server_raw.get("port", 8000)),
                enable_test_endpoints=bool(server_raw.get("enable_test_endpoints", False)),
            ),
            logging=LoggingConfig(
                verbose=bool(logging_raw.get("verbose", False)),
                log_file=Path(logging_raw["log_file"]) if logging_raw.get("log_file") else None,
            ),
        )
    except (TypeError, ValueError) as error:
        raise ConfigError(f"Invalid value in {config_path}: {error}") from error

    return config


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return value
