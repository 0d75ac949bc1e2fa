"""
JSON formatter — exports current state as a JSON document that the CLI
can read back as desired state.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .. import __version__
from ..schema import ResourceDescriptor, ResourceState


class JsonFormatter:
    """One JSON line per instance; document() assembles the full file."""

    def __init__(
        self,
        tenant_id: str = "",
        organization: str = "",
        application_id: str = "",
        certificate_thumbprint: str = "",
    ):
        self.tenant_id = tenant_id
        self.organization = organization
        self.application_id = application_id
        self.certificate_thumbprint = certificate_thumbprint

    def format(self, descriptor: ResourceDescriptor, state: ResourceState) -> str:
        entry = {
            "resource": descriptor.name,
            "parameters": descriptor.to_parameters(state),
        }
        return json.dumps(entry, ensure_ascii=False) + "\n"

    def document(self, blocks: list[str]) -> str:
        entries = [
            json.loads(line)
            for block in blocks
            for line in block.splitlines()
            if line.strip()
        ]
        payload = {
            "metadata": {
                "engine": "m365_dsc_engine",
                "version": __version__,
                "tenant_id": self.tenant_id,
                "organization": self.organization,
                "application_id": self.application_id,
                "certificate_thumbprint": self.certificate_thumbprint,
                "generated_utc": datetime.now(timezone.utc).isoformat(),
            },
            "resources": entries,
        }
        return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def load_document(source: str | Path) -> list[tuple[str, dict[str, Any]]]:
    """
    Read desired state entries from an exported JSON document, or from a
    bare list of {"resource": ..., "parameters": ...} objects.
    """
    text = Path(source).read_text(encoding="utf-8")
    data = json.loads(text)
    entries = data.get("resources", []) if isinstance(data, dict) else data
    return [(e["resource"], dict(e.get("parameters", {}))) for e in entries]


def write_document(text: str, output_dir: Path, filename: str) -> Path:
    """Write an export document and return its path."""
    output_dir.mkdir(parents=True, exist_ok=True)
    filepath = output_dir / filename
    with open(filepath, "w", encoding="utf-8") as fh:
        fh.write(text)
    return filepath
