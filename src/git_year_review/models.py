from __future__ import annotations

import dataclasses
import datetime as dt


@dataclasses.dataclass(frozen=True)
class Commit:
    hash: str
    timestamp: dt.datetime  # author date, offset preserved
    message: str
    author_email: str
    repo: str
    additions: int = 0
    deletions: int = 0

    def to_json_dict(self) -> dict[str, object]:
        return {
            "hash": self.hash,
            "date": self.timestamp.isoformat(),
            "message": self.message,
            "repo": self.repo,
            "additions": int(self.additions),
            "deletions": int(self.deletions),
        }


@dataclasses.dataclass
class RepoExtract:
    name: str
    path: str
    commits: list[Commit] = dataclasses.field(default_factory=list)
    file_types: dict[str, int] = dataclasses.field(default_factory=dict)  # extension -> touches
    errors: list[str] = dataclasses.field(default_factory=list)
    failed: bool = False  # commit log query failed; repo contributes nothing


@dataclasses.dataclass
class RepositorySummary:
    name: str
    commits: int = 0
    additions: int = 0
    deletions: int = 0

    def to_json_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "commits": int(self.commits),
            "additions": int(self.additions),
            "deletions": int(self.deletions),
        }


@dataclasses.dataclass
class AggregateReport:
    total_commits: int
    total_additions: int
    total_deletions: int
    repositories: list[RepositorySummary]
    commits: list[Commit]
    hourly_distribution: list[int]  # 24 slots, commit-local hour
    daily_distribution: list[int]  # 7 slots, 0 = Sunday
    file_types: dict[str, int]
    author_email: str
    author_name: str

    def to_json_dict(self) -> dict[str, object]:
        return {
            "total_commits": int(self.total_commits),
            "total_additions": int(self.total_additions),
            "total_deletions": int(self.total_deletions),
            "repositories": [r.to_json_dict() for r in self.repositories],
            "commits": [c.to_json_dict() for c in self.commits],
            "hourly_distribution": [int(v) for v in self.hourly_distribution],
            "daily_distribution": [int(v) for v in self.daily_distribution],
            "file_types": {k: int(v) for k, v in self.file_types.items()},
            "author_email": self.author_email,
            "author_name": self.author_name,
        }
