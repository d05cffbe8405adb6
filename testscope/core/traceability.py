import json
from pathlib import Path
from typing import Any, Dict, List, Union

import structlog

from testscope.models.schemas import TraceabilityTable

logger = structlog.get_logger()


def parse_traceability(data: Dict[str, Any]) -> TraceabilityTable:
    """Accepts {"components": {"Name": {"tags": [...]}}} or the flat {"Name": [...]}."""
    components = data.get("components", data) if isinstance(data, dict) else None
    if not isinstance(components, dict):
        raise ValueError("traceability matrix must map component names to tags")

    mapping: Dict[str, List[str]] = {}
    for name, entry in components.items():
        tags = entry.get("tags", []) if isinstance(entry, dict) else entry
        if not isinstance(tags, list):
            raise ValueError(f"tags for component {name!r} must be a list")
        mapping[name] = [str(t) for t in tags]
    return TraceabilityTable.from_mapping(mapping)


def load_traceability_table(path: Union[str, Path]) -> TraceabilityTable:
    """Read the matrix file; a missing file means no mappings."""
    path = Path(path)
    if not path.exists():
        logger.warning("Traceability matrix not found, component tags fall back to labels", path=str(path))
        return TraceabilityTable()
    with path.open(encoding="utf-8") as f:
        table = parse_traceability(json.load(f))
    logger.info("Traceability matrix loaded", path=str(path), components=len(table.components))
    return table
