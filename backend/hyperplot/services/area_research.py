"""
Read-only access to uploaded area research documents.

An external ingestion job parses broker/market PDFs and writes the results
as a JSON array to ``settings.area_research_path``. This module only reads
that file; it never writes it.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from hyperplot.models.schemas import AreaResearchDocument

logger = logging.getLogger(__name__)


def read_cached_area_research(path: str | Path) -> list[AreaResearchDocument]:
    """Load all research documents. A missing or unreadable file yields [].

    Individual malformed entries are skipped with a warning; the rest load.
    """
    path = Path(path)
    if not path.is_file():
        return []

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read area research file %s: %s", path, exc)
        return []

    if isinstance(raw, dict):
        raw = raw.get("documents", [])
    if not isinstance(raw, list):
        logger.warning("Area research file %s is not a list of documents", path)
        return []

    documents = []
    for i, entry in enumerate(raw):
        try:
            documents.append(AreaResearchDocument.model_validate(entry))
        except ValidationError as exc:
            logger.warning("Skipping malformed area research entry %d: %s", i, exc)
    return documents
