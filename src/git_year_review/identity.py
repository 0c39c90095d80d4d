from __future__ import annotations

import dataclasses


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


@dataclasses.dataclass(frozen=True)
class EmailMatcher:
    """
    Exact, case-insensitive author email filter.

    `git log --author` is a loose substring/regex match, so every commit it
    returns is checked again here.
    """

    email: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "email", normalize_email(self.email))

    def matches(self, author_email: str) -> bool:
        return bool(self.email) and normalize_email(author_email) == self.email
