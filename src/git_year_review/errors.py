from __future__ import annotations


class GitYearReviewError(Exception):
    """Base class for errors raised by git-year-review."""


class ExtractionError(GitYearReviewError):
    """A git query failed for one repository (not a repo, corrupted, git missing, timeout)."""


class NoRepositoriesFound(GitYearReviewError):
    """Discovery found no git repository under the scan root."""


class UploadError(GitYearReviewError):
    """Transport failure or a non-success response from the upload service."""


class ConfigPersistenceError(GitYearReviewError):
    """The saved configuration file could not be read or written."""


class MissingCredentialError(GitYearReviewError):
    """An upload key or author email is required but cannot be prompted for."""
