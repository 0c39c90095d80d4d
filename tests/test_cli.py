from __future__ import annotations

import json
import os
import shutil
import subprocess
import sys
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path

import pytest

from git_year_review.cli import main

needs_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is required")


def _run(cmd: list[str], *, cwd: Path, env: dict[str, str] | None = None) -> str:
    proc = subprocess.run(cmd, cwd=str(cwd), env=env, check=True, capture_output=True, text=True)
    return proc.stdout


def _commit_file(*, repo: Path, filename: str, content: str, author_date: str, email: str = "dev@example.com") -> None:
    p = repo / filename
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")
    _run(["git", "add", filename], cwd=repo)
    env = os.environ.copy()
    env["GIT_AUTHOR_NAME"] = "Dev"
    env["GIT_AUTHOR_EMAIL"] = email
    env["GIT_COMMITTER_NAME"] = "Dev"
    env["GIT_COMMITTER_EMAIL"] = email
    env["GIT_AUTHOR_DATE"] = author_date
    env["GIT_COMMITTER_DATE"] = author_date
    _run(["git", "commit", "-q", "-m", f"update {filename}"], cwd=repo, env=env)


@pytest.fixture
def git_home(tmp_path: Path, monkeypatch) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    gitconfig = home / "gitconfig"
    gitconfig.write_text("[user]\n\tname = Dev Person\n\temail = dev@example.com\n", encoding="utf-8")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(gitconfig))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_YEAR_REVIEW_CONFIG_DIR", str(home / "cfg"))
    monkeypatch.chdir(home)
    return home


def _scan_root(tmp_path: Path) -> Path:
    root = tmp_path / "code"
    a = root / "alpha"
    b = root / "group" / "beta"
    for repo in (a, b):
        repo.mkdir(parents=True)
        _run(["git", "init", "-q"], cwd=repo)
    _commit_file(repo=a, filename="a.py", content="1\n2\n", author_date="2024-02-01T10:00:00+01:00")
    _commit_file(repo=a, filename="b.py", content="1\n", author_date="2024-02-02T11:00:00+01:00")
    _commit_file(repo=a, filename="c.txt", content="x\n", author_date="2024-02-03T12:00:00+01:00", email="someone@else.org")
    _commit_file(repo=b, filename="old.go", content="1\n", author_date="2023-08-10T22:00:00-04:00")
    _commit_file(repo=b, filename="main.go", content="1\n2\n3\n", author_date="2024-08-10T22:00:00-04:00")
    return root


def _serve(response: dict, status: int = 200) -> tuple[HTTPServer, list[dict]]:
    received: list[dict] = []

    class Handler(BaseHTTPRequestHandler):
        def do_POST(self) -> None:  # noqa: N802
            raw = self.rfile.read(int(self.headers.get("Content-Length", "0")))
            received.append(json.loads(raw.decode("utf-8")))
            body = json.dumps(response).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, fmt: str, *args: object) -> None:
            return

    server = HTTPServer(("127.0.0.1", 0), Handler)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    return server, received


@needs_git
def test_end_to_end_upload(tmp_path: Path, git_home: Path, capsys) -> None:
    root = _scan_root(tmp_path)
    server, received = _serve({"success": True, "preview_url": "https://example.test/preview/1"})
    try:
        code = main(
            [
                "--dir", str(root),
                "--year", "2024",
                "--key", "usr_test",
                "--yes",
                "--api-url", f"http://127.0.0.1:{server.server_port}/upload",
            ]
        )
    finally:
        server.shutdown()

    out = capsys.readouterr().out
    assert code == 0
    assert "https://example.test/preview/1" in out
    assert len(received) == 1
    body = received[0]
    assert body["key"] == "usr_test"
    assert body["year"] == 2024
    data = body["data"]
    assert data["total_commits"] == 3
    assert data["total_additions"] == 6
    assert data["author_email"] == "dev@example.com"
    assert data["author_name"] == "Dev Person"
    assert [(r["name"], r["commits"]) for r in data["repositories"]] == [("alpha", 2), ("beta", 1)]
    assert data["file_types"] == {"py": 2, "go": 1}
    assert data["hourly_distribution"][22] == 1
    assert sum(data["daily_distribution"]) == 3


@needs_git
def test_dry_run_saves_payload_without_key(tmp_path: Path, git_home: Path) -> None:
    root = _scan_root(tmp_path)
    out = tmp_path / "payload.json"

    code = main(["--dir", str(root), "--year", "2024", "--dry-run", "--save-payload", str(out)])

    assert code == 0
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["key"] == ""
    assert payload["data"]["total_commits"] == 3


@needs_git
def test_no_commits_is_a_clean_exit(tmp_path: Path, git_home: Path, capsys) -> None:
    root = _scan_root(tmp_path)
    server, received = _serve({"success": True})
    try:
        code = main(
            ["--dir", str(root), "--year", "2019", "--key", "usr_test", "--yes", "--api-url", f"http://127.0.0.1:{server.server_port}/"]
        )
    finally:
        server.shutdown()

    assert code == 0
    assert received == []
    assert "No commits found" in capsys.readouterr().out


@needs_git
def test_upload_failure_exits_non_zero(tmp_path: Path, git_home: Path, capsys) -> None:
    root = _scan_root(tmp_path)
    server, _ = _serve({"success": False, "error": "Invalid upload key"})
    try:
        code = main(
            ["--dir", str(root), "--year", "2024", "--key", "usr_bad", "--yes", "--api-url", f"http://127.0.0.1:{server.server_port}/"]
        )
    finally:
        server.shutdown()

    assert code == 1
    assert "Invalid upload key" in capsys.readouterr().err


@needs_git
def test_upload_declined_without_tty_is_a_clean_exit(tmp_path: Path, git_home: Path, capsys) -> None:
    root = _scan_root(tmp_path)

    code = main(["--dir", str(root), "--year", "2024", "--key", "usr_test"])

    assert code == 0
    assert "Upload cancelled" in capsys.readouterr().out


def test_no_repositories_exits_one(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("GIT_YEAR_REVIEW_CONFIG_DIR", str(tmp_path / "cfg"))
    empty = tmp_path / "empty"
    empty.mkdir()

    code = main(["--dir", str(empty), "--key", "usr_test", "--email", "dev@example.com", "--yes"])

    assert code == 1
    assert "No Git repositories found" in capsys.readouterr().err


def test_missing_key_without_tty_exits_one(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("GIT_YEAR_REVIEW_CONFIG_DIR", str(tmp_path / "cfg"))

    code = main(["--dir", str(tmp_path), "--email", "dev@example.com"])

    assert code == 1
    assert "no upload key" in capsys.readouterr().err


def test_module_help_lists_flags(tmp_path: Path) -> None:
    env = os.environ.copy()
    env["PYTHONPATH"] = str(Path(__file__).resolve().parents[1] / "src")
    proc = subprocess.run(
        [sys.executable, "-m", "git_year_review", "--help"],
        cwd=str(tmp_path),
        env=env,
        text=True,
        capture_output=True,
    )
    assert proc.returncode == 0, proc.stderr
    for flag in ("--key", "--year", "--dir", "--email", "--depth", "--dry-run"):
        assert flag in proc.stdout
    assert "Year in Review" in proc.stdout
