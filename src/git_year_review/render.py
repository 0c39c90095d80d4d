from __future__ import annotations

from pathlib import Path

from .models import AggregateReport

BANNER = r"""
+--------------------------------------------------------------+
|                        git-year-review                       |
+--------------------------------------------------------------+
""".strip("\n")

DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def fmt_int(n: int) -> str:
    return f"{int(n):,}"


def trunc(s: str, max_len: int) -> str:
    if len(s) <= max_len:
        return s
    if max_len <= 1:
        return s[:max_len]
    return s[: max_len - 1] + "…"


def bar(value: int, max_value: int, width: int = 22) -> str:
    if max_value <= 0:
        filled = 0
    else:
        filled = int(round((value / max_value) * width))
    filled = max(0, min(width, filled))
    return "[" + ("#" * filled) + ("-" * (width - filled)) + "]"


def format_startup_header(*, root: Path, year: int, depth: int, jobs: int) -> str:
    lines = [
        BANNER,
        "",
        "Generate your Year in Review from Git commits.",
        f"- Scan root: {root} (depth {depth})",
        f"- Year: {year}",
        f"- Jobs: {jobs}",
        "- Git access is read-only; nothing is uploaded without confirmation.",
        "",
    ]
    return "\n".join(lines)


def render_summary(report: AggregateReport, *, top_n: int = 5) -> str:
    sep = "  " + "-" * 29
    lines = [
        "  Summary:",
        sep,
        f"  Total commits:    {fmt_int(report.total_commits)}",
        f"  Lines added:      +{fmt_int(report.total_additions)}",
        f"  Lines deleted:    -{fmt_int(report.total_deletions)}",
        f"  Repositories:     {fmt_int(len(report.repositories))}",
        sep,
    ]
    if not report.total_commits:
        return "\n".join(lines)

    if report.repositories:
        lines.append("  Top repositories:")
        top = report.repositories[:top_n]
        max_commits = max(r.commits for r in top)
        for r in top:
            lines.append(f"  {trunc(r.name, 24):<24} {bar(r.commits, max_commits, width=16)} {fmt_int(r.commits)}")

    busiest_hour = max(range(24), key=lambda h: report.hourly_distribution[h])
    busiest_day = max(range(7), key=lambda d: report.daily_distribution[d])
    lines.append(f"  Busiest hour:     {busiest_hour:02d}:00 ({fmt_int(report.hourly_distribution[busiest_hour])} commits)")
    lines.append(f"  Busiest day:      {DAY_NAMES[busiest_day]} ({fmt_int(report.daily_distribution[busiest_day])} commits)")

    if report.file_types:
        top_types = sorted(report.file_types.items(), key=lambda kv: (-kv[1], kv[0]))[:top_n]
        lines.append("  File types:       " + ", ".join(f"{ext} ({fmt_int(n)})" for ext, n in top_types))
    lines.append(sep)
    return "\n".join(lines)
