from __future__ import annotations

import dataclasses
from collections import Counter
from typing import Iterable

from .git import get_config_value
from .models import AggregateReport, Commit, RepoExtract, RepositorySummary

COMMIT_LIMIT = 1000
DEFAULT_AUTHOR_NAME = "Developer"
COMMIT_ORDERS = ("encountered", "recent")


@dataclasses.dataclass
class ReportAccumulator:
    total_commits: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    repositories: list[RepositorySummary] = dataclasses.field(default_factory=list)
    commits: list[Commit] = dataclasses.field(default_factory=list)
    hourly: list[int] = dataclasses.field(default_factory=lambda: [0] * 24)
    daily: list[int] = dataclasses.field(default_factory=lambda: [0] * 7)
    file_types: Counter[str] = dataclasses.field(default_factory=Counter)


def day_of_week(commit: Commit) -> int:
    """0 = Sunday .. 6 = Saturday, in the commit's own timezone."""
    return (commit.timestamp.weekday() + 1) % 7


def accumulate(acc: ReportAccumulator, extract: RepoExtract) -> ReportAccumulator:
    acc.file_types.update(extract.file_types)
    if not extract.commits:
        return acc

    summary = RepositorySummary(name=extract.name)
    for c in extract.commits:
        summary.commits += 1
        summary.additions += c.additions
        summary.deletions += c.deletions
        acc.hourly[c.timestamp.hour] += 1
        acc.daily[day_of_week(c)] += 1
        acc.commits.append(c)

    acc.repositories.append(summary)
    acc.total_commits += summary.commits
    acc.total_additions += summary.additions
    acc.total_deletions += summary.deletions
    return acc


def select_commits(commits: list[Commit], *, limit: int = COMMIT_LIMIT, order: str = "encountered") -> list[Commit]:
    """
    Pick the commits embedded in the report.

    "encountered" keeps the first `limit` in accumulation order (repositories in
    discovery order, git log order within each). "recent" keeps the `limit`
    newest by author date, ties in accumulation order.
    """
    if order not in COMMIT_ORDERS:
        raise ValueError(f"unknown commit order: {order!r}")
    if limit <= 0:
        return []
    if order == "recent":
        return sorted(commits, key=lambda c: c.timestamp, reverse=True)[:limit]
    return commits[:limit]


def aggregate(
    extracts: Iterable[RepoExtract],
    *,
    author_email: str,
    author_name: str = DEFAULT_AUTHOR_NAME,
    commit_limit: int = COMMIT_LIMIT,
    commit_order: str = "encountered",
) -> AggregateReport:
    acc = ReportAccumulator()
    for extract in extracts:
        acc = accumulate(acc, extract)

    return AggregateReport(
        total_commits=acc.total_commits,
        total_additions=acc.total_additions,
        total_deletions=acc.total_deletions,
        # sorted() is stable: equal counts keep discovery order
        repositories=sorted(acc.repositories, key=lambda r: r.commits, reverse=True),
        commits=select_commits(acc.commits, limit=commit_limit, order=commit_order),
        hourly_distribution=list(acc.hourly),
        daily_distribution=list(acc.daily),
        file_types=dict(acc.file_types),
        author_email=author_email,
        author_name=author_name or DEFAULT_AUTHOR_NAME,
    )


def resolve_author_name() -> str:
    return get_config_value("user.name") or DEFAULT_AUTHOR_NAME
