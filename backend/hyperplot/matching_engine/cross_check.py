"""Owner-sheet annotation of match results. Augments, never filters."""

from __future__ import annotations

import logging

from hyperplot.models.schemas import MatchResult

logger = logging.getLogger(__name__)


async def cross_check_with_sheet(results: list[MatchResult], sheets) -> list[MatchResult]:
    """Attach owner reference and sheet row to results found in the sheet.

    One batched lookup for the whole set. On failure the results come back
    unannotated. Results are copied, never mutated.
    """
    if not results:
        return []

    plot_ids = list(dict.fromkeys(r.matched_plot_id for r in results))
    try:
        rows = await sheets.lookup_sheet_rows(plot_ids)
    except Exception as exc:
        logger.warning("Sheet cross-check failed, results left unannotated: %s", exc)
        return list(results)

    annotated = []
    for result in results:
        row = rows.get(result.matched_plot_id)
        if row is None:
            annotated.append(result)
            continue
        annotated.append(result.model_copy(update={
            "owner_reference": row.get("owner_reference") or None,
            "sheet_metadata": dict(row),
        }))
    return annotated
