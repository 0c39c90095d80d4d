from __future__ import annotations

import dataclasses
import json
import os
import ssl
import urllib.error
import urllib.request
from pathlib import Path

from . import __version__
from .errors import UploadError
from .logging import get_logger
from .models import AggregateReport

log = get_logger("publish")

DEFAULT_API_URL = "https://myyearinreview.dev/api/year-review/upload"


@dataclasses.dataclass(frozen=True)
class UploadResult:
    success: bool
    preview_url: str = ""
    error: str = ""


def build_upload_payload(*, key: str, year: int, report: AggregateReport) -> dict:
    return {"key": key, "year": int(year), "data": report.to_json_dict()}


def payload_bytes(payload: dict) -> bytes:
    return json.dumps(payload, ensure_ascii=False, allow_nan=False).encode("utf-8")


def save_payload(path: Path, payload: dict) -> None:
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def _parse_response(body: str) -> dict | None:
    try:
        obj = json.loads(body)
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def _error_message(code: int, body: str) -> str:
    obj = _parse_response(body)
    if obj is not None and str(obj.get("error", "") or "").strip():
        return str(obj["error"]).strip()
    return f"HTTP {code}: {body.strip()[:500]}"


def upload_report(
    payload: dict,
    *,
    api_url: str = DEFAULT_API_URL,
    timeout_s: int = 60,
    ca_bundle_path: str = "",
) -> UploadResult:
    """
    POST the payload as JSON and return the parsed `{success, preview_url, error}`.

    Raises UploadError on transport failures, HTTP errors, unparseable
    responses and `success: false`.
    """
    if not (api_url or "").strip():
        raise ValueError("api_url is required")

    req = urllib.request.Request(
        api_url.strip(),
        method="POST",
        data=payload_bytes(payload),
        headers={
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"git-year-review/{__version__}",
        },
    )
    try:
        ctx = _ssl_context(ca_bundle_path=ca_bundle_path)
        with urllib.request.urlopen(req, timeout=timeout_s, context=ctx) as resp:
            code = int(getattr(resp, "status", 0) or 0)
            body = resp.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as e:
        body = ""
        try:
            body = e.read().decode("utf-8", errors="replace")
        except OSError:
            body = ""
        log.debug("upload HTTP %s: %s", e.code, body[:500])
        raise UploadError(_error_message(int(e.code or 0), body)) from e
    except urllib.error.URLError as e:
        raise UploadError(f"upload failed: {e.reason}") from e
    except OSError as e:
        raise UploadError(f"upload failed: {e}") from e

    log.debug("upload HTTP %s: %s", code, body[:500])
    obj = _parse_response(body)
    if obj is None:
        raise UploadError(f"unexpected response (HTTP {code}): {body.strip()[:500]}")
    result = UploadResult(
        success=obj.get("success") is True,
        preview_url=str(obj.get("preview_url", "") or ""),
        error=str(obj.get("error", "") or ""),
    )
    if not result.success:
        raise UploadError(result.error or "upload was not accepted")
    return result


def _ssl_context(*, ca_bundle_path: str) -> ssl.SSLContext:
    cafile, capath = _resolve_ca_paths(ca_bundle_path)
    if cafile or capath:
        return ssl.create_default_context(cafile=cafile, capath=capath)
    return ssl.create_default_context()


def _resolve_ca_paths(explicit: str) -> tuple[str | None, str | None]:
    candidates = [(explicit or "").strip()]
    candidates += [(os.environ.get(k) or "").strip() for k in ("SSL_CERT_FILE", "REQUESTS_CA_BUNDLE", "CURL_CA_BUNDLE")]
    for p in candidates:
        if not p:
            continue
        path = Path(p).expanduser()
        if path.is_dir():
            return None, str(path)
        return str(path), None
    return None, None
