from __future__ import annotations

import json
import os
from pathlib import Path

from .errors import ConfigPersistenceError
from .logging import get_logger

log = get_logger("config")

CONFIG_DIR_ENV = "GIT_YEAR_REVIEW_CONFIG_DIR"


def default_config_path() -> Path:
    override = (os.environ.get(CONFIG_DIR_ENV) or "").strip()
    base = Path(override).expanduser() if override else Path.home() / ".config" / "git-year-review"
    return base / "config.json"


def load_config(config_path: Path) -> dict:
    if not config_path.exists():
        return {}
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigPersistenceError(f"cannot read {config_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigPersistenceError(f"{config_path} does not hold a JSON object")
    return data


def save_config(config_path: Path, config: dict) -> None:
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(json.dumps(config, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    except OSError as e:
        raise ConfigPersistenceError(f"cannot write {config_path}: {e}") from e
    if os.name == "posix":
        try:
            os.chmod(config_path, 0o600)
        except OSError:
            pass


def load_saved_key(config_path: Path | None = None) -> str:
    """Return the saved upload key, or "" when none is stored or the file is unreadable."""
    path = config_path or default_config_path()
    try:
        config = load_config(path)
    except ConfigPersistenceError as e:
        log.debug("ignoring saved config: %s", e)
        return ""
    return str(config.get("uploadKey", "") or "").strip()


def save_key(key: str, config_path: Path | None = None) -> bool:
    path = config_path or default_config_path()
    try:
        config = load_config(path)
    except ConfigPersistenceError:
        config = {}
    config["uploadKey"] = key
    try:
        save_config(path, config)
    except ConfigPersistenceError as e:
        log.debug("upload key not saved: %s", e)
        return False
    return True


def load_saved_api_url(config_path: Path | None = None) -> str:
    path = config_path or default_config_path()
    try:
        config = load_config(path)
    except ConfigPersistenceError:
        return ""
    return str(config.get("apiUrl", "") or "").strip()
