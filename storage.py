from __future__ import annotations
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any


logger = logging.getLogger(__name__)

DATA_DIR_ENV = "STUDIUM_DATA_DIR"


def data_dir() -> Path:
    """
    Directory holding config.json and the cached session. Only resolved here;
    save_json creates it on the first write.
    """
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        return Path(override).expanduser()
    if sys.platform == "win32" and os.environ.get("APPDATA"):
        return Path(os.environ["APPDATA"]) / "Studium"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "Studium"
    config_home = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(config_home) / "studium"


def data_path(filename: str | Path) -> Path:
    return data_dir() / Path(filename)


def _backup_file(path: Path, content: str) -> None:
    backup = path.with_suffix(path.suffix + ".bak")
    try:
        backup.write_text(content, encoding="utf-8")
    except OSError:
        logger.warning("Could not write backup %s", backup)


def load_json(path: Path | str, default: Any = None) -> Any:
    """
    Load JSON from path with safety:
    - If missing: return default
    - If empty or invalid: write .bak and return default
    """
    path = Path(path)
    fallback = {} if default is None else default
    if not path.exists():
        return fallback

    raw_text = path.read_text(encoding="utf-8")
    text = raw_text.strip()
    if not text:
        return fallback

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Invalid JSON in %s, keeping a .bak copy", path)
        _backup_file(path, raw_text)
        return fallback


def save_json(path: Path | str, payload: Any) -> None:
    """
    Atomic JSON write: write to temp file then replace target.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    temp = path.with_suffix(path.suffix + ".tmp")
    temp.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    temp.replace(path)


def delete_json(path: Path | str) -> None:
    try:
        Path(path).unlink()
    except FileNotFoundError:
        pass
