"""JSON export of a resolved bundle.

Why JSON:
- Lets the `resolve` command hand its output to other FHIR tooling.
- Keeps the rewritten references inspectable without talking to a server.
"""

from __future__ import annotations

import json
from pathlib import Path

from bundle_submit.core.domain.models import Bundle


def dump_bundle_json(bundle: Bundle) -> str:
    """Serialize `bundle` as UTF-8 JSON with stable formatting."""

    return json.dumps(bundle.to_payload(), ensure_ascii=False, indent=2) + "\n"


def export_bundle_json(*, bundle: Bundle, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(dump_bundle_json(bundle), encoding="utf-8")
    return output_path
