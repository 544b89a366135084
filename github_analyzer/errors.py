from __future__ import annotations


class AnalyzerError(RuntimeError):
    """Base class for failures raised by the analysis pipeline."""


class ConfigError(AnalyzerError):
    pass


class AccountNotFoundError(AnalyzerError):
    def __init__(self, username: str) -> None:
        super().__init__(f'GitHub user "{username}" does not exist')
        self.username = username


class CloneError(AnalyzerError):
    pass


class CommitLogError(AnalyzerError):
    pass


class LanguageToolError(AnalyzerError):
    pass


class LLMUnavailableError(AnalyzerError):
    pass


class InsightParseError(AnalyzerError):
    """The model's structured-insight answer could not be decoded."""


class ReportAssemblyError(AnalyzerError):
    """Raised when the merged insights cannot be turned into a report."""
