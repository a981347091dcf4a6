"""Loading bundle documents from disk.

Supports:
- a single JSON file holding one Bundle resource
- a directory of such files (`*.json`, sorted by name)
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from bundle_submit.core.domain.models import Bundle
from bundle_submit.core.errors import BundleParseError, FileAccessError


def load_bundle(path: Path) -> Bundle:
    try:
        raw = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise FileAccessError(path, str(exc)) from exc

    try:
        data = json.loads(raw)
        return Bundle.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as exc:
        raise BundleParseError(path, str(exc)) from exc


def iter_bundle_files(directory: Path) -> list[Path]:
    return sorted(p for p in directory.glob("*.json") if p.is_file())
