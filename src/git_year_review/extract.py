from __future__ import annotations

import dataclasses
import datetime as dt
import re
import subprocess
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, Protocol

from .errors import ExtractionError
from .git import run_git
from .identity import EmailMatcher
from .logging import get_logger
from .models import Commit, RepoExtract

log = get_logger("extract")

RECORD_MARKER = "@@@"
# Subject goes last so tabs inside it survive the split.
LOG_FORMAT = f"{RECORD_MARKER}%H%x09%aI%x09%ae%x09%s"
# Paths never contain NUL, so a NUL-led line is always an author header.
FILES_MARKER = "\x00"
FILES_FORMAT = "%x00%ae"
LEGACY_LOG_FORMAT = "%H|%aI|%s|%ae"

OTHER_EXTENSION = "other"

_INSERTIONS_RE = re.compile(r"(\d+) insertion")
_DELETIONS_RE = re.compile(r"(\d+) deletion")
_EXTENSION_RE = re.compile(r"^[a-z0-9_+-]+$")


def year_range(year: int) -> tuple[str, str]:
    return f"{year:04d}-01-01T00:00:00", f"{year:04d}-12-31T23:59:59"


def parse_commit_date(value: str) -> dt.datetime | None:
    s = (value or "").strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        d = dt.datetime.fromisoformat(s)
    except ValueError:
        return None
    if d.tzinfo is None:
        d = d.replace(tzinfo=dt.timezone.utc)
    return d


def parse_shortstat(line: str) -> tuple[int, int] | None:
    """
    Parse a `--shortstat` summary such as
    " 3 files changed, 2 insertions(+), 1 deletion(-)".
    Returns None for lines that are not stat lines.
    """
    if "insertion" not in line and "deletion" not in line:
        return None
    ins = _INSERTIONS_RE.search(line)
    dele = _DELETIONS_RE.search(line)
    if ins is None and dele is None:
        return None
    return (int(ins.group(1)) if ins else 0, int(dele.group(1)) if dele else 0)


def extension_key(path: str) -> str:
    name = (path or "").strip().strip('"').replace("\\", "/").rsplit("/", 1)[-1]
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem:
        return OTHER_EXTENSION
    ext = ext.lower()
    if not _EXTENSION_RE.match(ext):
        return OTHER_EXTENSION
    return ext


class LogQuery(Protocol):
    """Source of raw `git log` output lines for one repository."""

    grammar: str  # "structured" or "legacy"

    def commit_log(self, repo: Path, year: int, author_email: str) -> list[str]: ...

    def touched_files(self, repo: Path, year: int, author_email: str) -> list[str]: ...


class GitLogQuery:
    def __init__(self, *, timeout_s: float | None = 300, grammar: str = "structured") -> None:
        if grammar not in ("structured", "legacy"):
            raise ValueError(f"unknown log grammar: {grammar!r}")
        self.timeout_s = timeout_s
        self.grammar = grammar

    def _filters(self, year: int, author_email: str) -> list[str]:
        since, until = year_range(year)
        args = [f"--since={since}", f"--until={until}"]
        if author_email.strip():
            args += [f"--author={author_email.strip()}", "--fixed-strings", "--regexp-ignore-case"]
        return args

    def _log(self, repo: Path, args: list[str]) -> list[str]:
        cmd = ["-c", "core.quotePath=false", "log", "--no-color", *args]
        try:
            code, out, err = run_git(cmd, cwd=repo, timeout_s=self.timeout_s)
        except subprocess.TimeoutExpired as e:
            raise ExtractionError(f"git log timed out after {e.timeout}s") from e
        except OSError as e:
            raise ExtractionError(f"failed to start git log: {e}") from e
        if code != 0:
            raise ExtractionError(f"git log exited {code}: {err.strip()[:500]}")
        return out.splitlines()

    def commit_log(self, repo: Path, year: int, author_email: str) -> list[str]:
        fmt = LEGACY_LOG_FORMAT if self.grammar == "legacy" else LOG_FORMAT
        return self._log(repo, [*self._filters(year, author_email), f"--format={fmt}", "--shortstat"])

    def touched_files(self, repo: Path, year: int, author_email: str) -> list[str]:
        fmt = "" if self.grammar == "legacy" else FILES_FORMAT
        return self._log(repo, [*self._filters(year, author_email), "--name-only", f"--format={fmt}"])


def parse_commit_log(
    lines: Iterable[str],
    *,
    repo_name: str,
    matcher: EmailMatcher,
) -> tuple[list[Commit], list[str]]:
    """
    Parse output of `git log --format=LOG_FORMAT --shortstat`.

    A line starting with RECORD_MARKER opens a record; a following shortstat
    line sets its counts. A record ends at the next marker or at the end of
    output, so commits without a stat line (empty, merge, binary-only) count
    with zero additions and deletions.
    """
    commits: list[Commit] = []
    errors: list[str] = []

    current: tuple[str, dt.datetime, str, str] | None = None
    additions = 0
    deletions = 0

    def apply_commit() -> None:
        nonlocal current, additions, deletions
        if current is not None:
            sha, when, email, subject = current
            commits.append(
                Commit(
                    hash=sha,
                    timestamp=when,
                    message=subject,
                    author_email=email,
                    repo=repo_name,
                    additions=additions,
                    deletions=deletions,
                )
            )
        current = None
        additions = 0
        deletions = 0

    for raw_line in lines:
        line = raw_line.rstrip("\r\n")
        if line.startswith(RECORD_MARKER):
            apply_commit()
            parts = line[len(RECORD_MARKER) :].split("\t", 3)
            if len(parts) < 3:
                errors.append(f"malformed log header: {line[:200]!r}")
                continue
            sha, date_s, email = parts[0].strip(), parts[1].strip(), parts[2].strip()
            subject = parts[3] if len(parts) > 3 else ""
            if not matcher.matches(email):
                continue
            when = parse_commit_date(date_s)
            if when is None:
                errors.append(f"unparseable author date for {sha}: {date_s!r}")
                continue
            current = (sha, when, email, subject)
            continue

        if current is None:
            continue
        stats = parse_shortstat(line)
        if stats is not None:
            additions, deletions = stats
    apply_commit()
    return commits, errors


def parse_legacy_log(
    lines: Iterable[str],
    *,
    repo_name: str,
    matcher: EmailMatcher,
) -> tuple[list[Commit], list[str]]:
    """Parse output of `git log --format=LEGACY_LOG_FORMAT --shortstat` (`hash|date|subject|email`)."""
    commits: list[Commit] = []
    errors: list[str] = []
    current: Commit | None = None

    for raw_line in lines:
        line = raw_line.rstrip("\r\n")
        if "|" in line:
            if current is not None:
                commits.append(current)
                current = None
            parts = line.split("|")
            if len(parts) < 4:
                errors.append(f"malformed log header: {line[:200]!r}")
                continue
            sha, date_s, email = parts[0].strip(), parts[1].strip(), parts[-1].strip()
            if not matcher.matches(email):
                continue
            when = parse_commit_date(date_s)
            if when is None:
                errors.append(f"unparseable author date for {sha}: {date_s!r}")
                continue
            current = Commit(
                hash=sha,
                timestamp=when,
                message="|".join(parts[2:-1]),
                author_email=email,
                repo=repo_name,
            )
            continue

        if current is None:
            continue
        stats = parse_shortstat(line)
        if stats is not None:
            commits.append(dataclasses.replace(current, additions=stats[0], deletions=stats[1]))
            current = None
    if current is not None:
        commits.append(current)
    return commits, errors


def count_file_types(lines: Iterable[str], matcher: EmailMatcher | None = None) -> dict[str, int]:
    """
    Bucket `git log --name-only` paths by extension_key.

    With a matcher, lines are expected under FILES_FORMAT headers and only
    files below a matching author header count. Every touch counts; a file
    changed in three commits adds three.
    """
    counts: Counter[str] = Counter()
    include = matcher is None
    for raw_line in lines:
        line = raw_line.strip()
        if not line:
            continue
        if matcher is not None and line.startswith(FILES_MARKER):
            include = matcher.matches(line[len(FILES_MARKER) :])
            continue
        if include:
            counts[extension_key(line)] += 1
    return dict(counts)


def extract_repo(repo: Path, year: int, author_email: str, *, query: LogQuery | None = None) -> RepoExtract:
    q = query if query is not None else GitLogQuery()
    repo = Path(repo)
    out = RepoExtract(name=repo.name, path=str(repo))
    matcher = EmailMatcher(author_email)

    try:
        lines = q.commit_log(repo, year, author_email)
    except ExtractionError as e:
        log.debug("skipping %s: %s", repo, e)
        out.failed = True
        out.errors.append(str(e))
        return out

    parse = parse_legacy_log if q.grammar == "legacy" else parse_commit_log
    commits, warnings = parse(lines, repo_name=out.name, matcher=matcher)
    out.commits = commits
    out.errors.extend(warnings)

    try:
        files = q.touched_files(repo, year, author_email)
    except ExtractionError as e:
        log.debug("file list unavailable for %s: %s", repo, e)
        out.errors.append(f"file list unavailable: {e}")
        return out
    out.file_types = count_file_types(files, None if q.grammar == "legacy" else matcher)
    return out


def extract_repos(
    repos: list[Path],
    year: int,
    author_email: str,
    *,
    query: LogQuery | None = None,
    jobs: int = 1,
    progress: Callable[[int, int], None] | None = None,
) -> list[RepoExtract]:
    """Extract every repository; the result keeps the order of `repos` regardless of `jobs`."""
    q = query if query is not None else GitLogQuery()
    total = len(repos)
    results: list[RepoExtract] = []

    def one(repo: Path) -> RepoExtract:
        return extract_repo(repo, year, author_email, query=q)

    def collect(it: Iterable[RepoExtract]) -> list[RepoExtract]:
        for i, r in enumerate(it, start=1):
            results.append(r)
            if progress is not None and (i % 10 == 0 or i == total):
                progress(i, total)
        return results

    if jobs <= 1 or total <= 1:
        return collect(map(one, repos))
    with ThreadPoolExecutor(max_workers=jobs) as ex:
        return collect(ex.map(one, repos))
