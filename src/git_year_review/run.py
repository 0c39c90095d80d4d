from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .aggregate import aggregate, resolve_author_name
from .config import load_saved_api_url, load_saved_key
from .credentials import CredentialsProvider
from .errors import MissingCredentialError, NoRepositoriesFound, UploadError
from .extract import GitLogQuery, extract_repos
from .git import discover_git_roots
from .logging import get_logger
from .publish import DEFAULT_API_URL, build_upload_payload, save_payload, upload_report
from .render import format_startup_header, render_summary

log = get_logger("run")


def find_repos(root: Path, depth: int) -> list[Path]:
    repos = discover_git_roots(root, depth)
    if not repos:
        raise NoRepositoriesFound(f"No Git repositories found under: {root.resolve()}")
    return repos


def run_review(*, args: argparse.Namespace, credentials: CredentialsProvider | None = None) -> int:
    root = Path(args.dir)
    config_path: Path | None = args.config
    creds = credentials or CredentialsProvider(assume_yes=bool(args.yes), config_path=config_path)

    print(format_startup_header(root=root.resolve(), year=int(args.year), depth=int(args.depth), jobs=int(args.jobs)))

    try:
        if args.dry_run:
            upload_key = (args.key or "").strip() or load_saved_key(config_path)
        else:
            upload_key = creds.upload_key(args.key or "")
    except MissingCredentialError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Scanning for Git repos in: {root} ...")
    try:
        repos = find_repos(root, int(args.depth))
    except NoRepositoriesFound as e:
        print(str(e), file=sys.stderr)
        return 1
    print(f"Found {len(repos)} Git repositories")

    try:
        author_email = creds.author_email(args.email or "")
    except MissingCredentialError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Filtering commits by: {author_email}\n")

    selected = creds.select_repos(repos)

    def progress(done: int, total: int) -> None:
        print(f"Analyzed {done}/{total} repos...")

    query = GitLogQuery(timeout_s=args.timeout or None, grammar=str(args.log_format))
    extracts = extract_repos(selected, int(args.year), author_email, query=query, jobs=int(args.jobs), progress=progress)

    failed = [x for x in extracts if x.failed]
    for x in extracts:
        for err in x.errors:
            log.debug("%s: %s", x.path, err)
    if failed:
        print(f"Skipped {len(failed)} repositories that git could not read (use --verbose for details).")

    report = aggregate(
        extracts,
        author_email=author_email,
        author_name=resolve_author_name(),
        commit_order=str(args.commit_order),
    )
    print(f"Analyzed {report.total_commits} commits across {len(selected)} repositories\n")
    print(render_summary(report))
    print("")

    if report.total_commits == 0:
        print("No commits found for the specified year and author.")
        return 0

    payload = build_upload_payload(key=upload_key, year=int(args.year), report=report)
    if args.save_payload is not None:
        save_payload(args.save_payload, payload)
        print(f"Payload saved at: {args.save_payload}")

    if args.dry_run:
        print("Dry run: nothing uploaded.")
        return 0

    if not creds.confirm_upload():
        print("Upload cancelled.")
        return 0

    api_url = (args.api_url or "").strip() or load_saved_api_url(config_path) or DEFAULT_API_URL
    print("Uploading data...")
    try:
        result = upload_report(payload, api_url=api_url, ca_bundle_path=str(args.ca_bundle or ""))
    except UploadError as e:
        print("Upload failed.", file=sys.stderr)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print("Upload complete! Your Year in Review is ready.")
    if result.preview_url:
        print(f"Preview at: {result.preview_url}")
        print("Visit the link to preview and publish your review.")
    return 0
