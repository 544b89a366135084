from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Tuple


class FakeLLM:
    """Answers prompts by matching phrases in their opening instructions."""

    def __init__(self, rules: Sequence[Tuple[str, str]], default: str = "") -> None:
        self.rules = list(rules)
        self.default = default
        self.prompts: List[str] = []

    def complete(self, prompt: str, *, system: Optional[str] = None) -> str:
        self.prompts.append(prompt)
        head = prompt[:300]
        for phrase, answer in self.rules:
            if phrase in head:
                return answer
        return self.default

    def calls_matching(self, phrase: str) -> int:
        return sum(1 for prompt in self.prompts if phrase in prompt[:300])


def make_git_repo(path: Path, commit_dates: Sequence[str]) -> Path:
    """Create a repository with one commit per committer date."""
    path.mkdir(parents=True, exist_ok=True)
    _git(path, "init", "--quiet")
    for index, moment in enumerate(commit_dates):
        (path / f"file{index}.txt").write_text(f"change {index}\n", encoding="utf-8")
        _git(path, "add", ".")
        _git(path, "commit", "--quiet", "-m", f"commit {index}", env={"GIT_AUTHOR_DATE": moment, "GIT_COMMITTER_DATE": moment})
    return path


def _git(cwd: Path, *args: str, env: Optional[dict] = None) -> None:
    full_env = {**os.environ, **(env or {})}
    subprocess.run(
        ["git", "-c", "user.name=Test User", "-c", "user.email=test@example.com", "-c", "commit.gpgsign=false", *args],
        cwd=str(cwd),
        check=True,
        capture_output=True,
        env=full_env,
    )
