from __future__ import annotations

import sys
from pathlib import Path

from .config import load_saved_key, save_key
from .errors import MissingCredentialError
from .git import get_config_value

KEY_PREFIX = "usr_"
KEY_HELP_URL = "https://myyearinreview.dev/dashboard"


def _prompt_str(prompt: str, *, default: str | None = None) -> str:
    suffix = f" [{default}]" if default else ""
    try:
        ans = input(f"{prompt}{suffix}: ").strip()
    except EOFError:
        return default or ""
    return ans or (default or "")


def _prompt_bool(prompt: str, *, default: bool) -> bool:
    suffix = "[Y/n]" if default else "[y/N]"
    try:
        ans = input(f"{prompt} {suffix} ").strip().lower()
    except EOFError:
        return default
    if not ans:
        return default
    if ans in ("y", "yes"):
        return True
    if ans in ("n", "no"):
        return False
    return default


def _parse_exclusions(answer: str, count: int) -> set[int] | None:
    picked: set[int] = set()
    for part in answer.replace(" ", ",").split(","):
        part = part.strip()
        if not part:
            continue
        if not part.isdigit() or not (1 <= int(part) <= count):
            return None
        picked.add(int(part) - 1)
    return picked


class CredentialsProvider:
    """
    All interactive input lives here: upload key, author email, repository
    selection and the upload confirmation. With `interactive=False` nothing is
    prompted and missing values raise MissingCredentialError.
    """

    def __init__(self, *, interactive: bool | None = None, assume_yes: bool = False, config_path: Path | None = None) -> None:
        if interactive is None:
            interactive = sys.stdin.isatty() and sys.stdout.isatty()
        self.interactive = bool(interactive)
        self.assume_yes = bool(assume_yes)
        self.config_path = config_path

    def upload_key(self, cli_key: str = "") -> str:
        key = (cli_key or "").strip() or load_saved_key(self.config_path)
        if key:
            return key
        if not self.interactive:
            raise MissingCredentialError("no upload key: pass --key or run interactively once to save one")

        print("  No upload key found.")
        print(f"  Get your key at: {KEY_HELP_URL}\n")
        while True:
            key = _prompt_str("Enter your upload key")
            if key.startswith(KEY_PREFIX):
                break
            if not key:
                raise MissingCredentialError("no upload key entered")
            print(f"  Key should start with {KEY_PREFIX}")
        if save_key(key, self.config_path):
            print("  Key saved for future use.\n")
        return key

    def author_email(self, cli_email: str = "") -> str:
        email = (cli_email or "").strip() or get_config_value("user.email")
        if email:
            return email
        if not self.interactive:
            raise MissingCredentialError("no author email: pass --email or set `git config user.email`")
        while True:
            email = _prompt_str("Enter your Git author email")
            if "@" in email:
                return email
            if not email:
                raise MissingCredentialError("no author email entered")
            print("  Please enter a valid email")

    def select_repos(self, repos: list[Path]) -> list[Path]:
        if not self.interactive or self.assume_yes or len(repos) <= 1:
            return list(repos)
        print("Repositories (all included by default):")
        for i, r in enumerate(repos, start=1):
            print(f"  {i:>3}) {r.name}  ({r})")
        while True:
            ans = _prompt_str("Numbers to exclude (comma-separated, blank for none)")
            excluded = _parse_exclusions(ans, len(repos))
            if excluded is None:
                print(f"  Enter numbers between 1 and {len(repos)}")
                continue
            selected = [r for i, r in enumerate(repos) if i not in excluded]
            if selected:
                return selected
            print("  Select at least one repository")

    def confirm_upload(self) -> bool:
        if self.assume_yes:
            return True
        if not self.interactive:
            return False
        return _prompt_bool("Upload data and generate your Year in Review?", default=True)
