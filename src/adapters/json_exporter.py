"""Exportación JSON del snapshot.

Por qué JSON:
- Interoperabilidad con otras herramientas y pipelines.
- Misma forma que el valor de la caché, así un export se puede volver a cargar.
"""

from __future__ import annotations

import json
from pathlib import Path

from core.domain.models import UniverseCacheEntry, UniverseSnapshot


def export_snapshot_json(*, snapshot: UniverseSnapshot, output_path: Path) -> Path:
    """Exporta `UniverseSnapshot` a JSON UTF-8 con formato estable."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    payload = UniverseCacheEntry.from_snapshot(snapshot).model_dump(mode="json", by_alias=True)
    output_path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return output_path


def load_snapshot_json(path: Path) -> UniverseSnapshot:
    raw = path.read_text(encoding="utf-8")
    return UniverseCacheEntry.model_validate_json(raw).to_snapshot()
