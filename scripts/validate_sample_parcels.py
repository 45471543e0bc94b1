#!/usr/bin/env python3
"""
Run sample Dubai parcel briefs through the full HyperPlot pipeline.

normalize → match (registry, then GIS fallback) → resolve market data → feasibility

Prints a compact report per sample for manual review. Can be run against the
live API or by importing the engine directly.

Usage:
    # Against live API:
    python3 scripts/validate_sample_parcels.py --api http://localhost:8000

    # Direct import (no server needed):
    python3 scripts/validate_sample_parcels.py

    # Machine-readable output:
    python3 scripts/validate_sample_parcels.py --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from datetime import datetime

# Add backend to path for direct import mode
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
BACKEND_DIR = os.path.join(os.path.dirname(SCRIPT_DIR), "backend")
sys.path.insert(0, BACKEND_DIR)

# ──────────────────────────────────────────────────────────────────
# SAMPLE PARCELS
# ──────────────────────────────────────────────────────────────────

SAMPLE_PARCELS = [
    {
        "name": "Sports City mid-rise",
        "text": "Dubai Sports City, plot area 1,200 sqm, GFA 5,400 sqm, Residential, G+12",
        "verify": ["Area resolves to DSC", "Plot ratio ~4.5", "Profile market data used"],
    },
    {
        "name": "DLRC brief in sqft",
        "text": "DLRC residential plot 16,000 sqft, FAR 4.5",
        "verify": ["sqft converted to ~1,486 sqm", "Area resolves to DLRC"],
    },
    {
        "name": "Majan studio block",
        "text": "Majan - plot area: 950 sqm, BUA 4,750 sqm, Mixed Use",
        "verify": ["Area resolves to MAJAN", "Studio-heavy recommended mix"],
    },
    {
        "name": "Plot number lookup",
        "text": "Plot 6457899, area 2,300 sqm",
        "verify": ["Direct GIS lookup by id (confidence 100)"],
    },
    {
        "name": "Anchored location",
        "text": "Near Motor City, plot 1,800 sqm, GFA 7,200 sqm",
        "verify": ["No exact area profile", "Anchored on DSC, flagged as approximation"],
    },
]


# ──────────────────────────────────────────────────────────────────
# DIRECT ENGINE MODE (no server needed)
# ──────────────────────────────────────────────────────────────────

async def run_direct(sample: dict, mix_strategy: str) -> dict:
    """Run the pipeline by importing the engine directly."""
    from hyperplot.config import settings
    from hyperplot.feasibility_engine.calculator import calculate_feasibility, feasibility_input_from_plot
    from hyperplot.feasibility_engine.market_data import resolve_market_assumptions
    from hyperplot.matching_engine.fallback import match_with_fallback
    from hyperplot.models.schemas import PlotRecord
    from hyperplot.services.area_research import read_cached_area_research
    from hyperplot.services.gis import GISClient
    from hyperplot.services.parcel_input import normalize_parcel_input

    batch = normalize_parcel_input(sample["text"])
    if not batch.valid:
        return {"error": "; ".join(batch.warnings) or "No valid parcel"}
    spec = batch.valid[0]

    matches = await match_with_fallback([spec], [], GISClient.from_settings())
    best = matches[0] if matches else None

    if best is not None:
        plot = PlotRecord(
            id=best.matched_plot_id,
            area_sqm=best.matched_plot_area,
            gfa_sqm=best.matched_gfa,
            zoning=best.matched_zoning,
            location=best.matched_location,
        )
    else:
        # Unmatched: run the brief's own dimensions
        plot = PlotRecord(
            id=spec.plot_number or "brief",
            area_sqm=spec.plot_area_sqm,
            gfa_sqm=spec.gfa_sqm,
            zoning=spec.zoning or "",
            location=spec.area_name,
        )

    assumptions = resolve_market_assumptions(
        spec.area_name or sample["text"],
        research_documents=read_cached_area_research(settings.area_research_path),
    )
    try:
        inp = feasibility_input_from_plot(plot, ratio=spec.far, area_code=assumptions.area_code)
        result = calculate_feasibility(inp, mix_strategy, assumptions).to_dict()
    except ValueError as e:
        return {
            "spec": spec.model_dump(),
            "match": best.model_dump() if best else None,
            "assumptions": assumptions.to_dict(),
            "error": str(e),
        }

    return {
        "spec": spec.model_dump(),
        "match": best.model_dump() if best else None,
        "assumptions": assumptions.to_dict(),
        "feasibility": result,
    }


# ──────────────────────────────────────────────────────────────────
# API MODE
# ──────────────────────────────────────────────────────────────────

async def run_api(sample: dict, api_base: str, mix_strategy: str) -> dict:
    """Run the pipeline via the HTTP API."""
    import httpx
    async with httpx.AsyncClient(timeout=60) as client:
        resp = await client.post(f"{api_base}/api/v1/parcels/normalize", json={"text": sample["text"]})
        if resp.status_code != 200:
            return {"error": f"normalize returned {resp.status_code}: {resp.text[:500]}"}
        valid = resp.json()["valid"]
        if not valid:
            return {"error": "; ".join(resp.json()["warnings"]) or "No valid parcel"}
        spec = valid[0]

        resp = await client.post(f"{api_base}/api/v1/parcels/match-with-fallback", json={"specs": [spec]})
        if resp.status_code != 200:
            return {"error": f"match returned {resp.status_code}: {resp.text[:500]}"}
        matches = resp.json()["results"]
        best = matches[0] if matches else None

        area_sqm = best["matched_plot_area"] if best else spec["plot_area_sqm"]
        gfa_sqm = best["matched_gfa"] if best else spec["gfa_sqm"]
        ratio = spec.get("far") or (gfa_sqm / area_sqm if area_sqm and gfa_sqm else None)
        if not area_sqm or not ratio:
            return {"spec": spec, "match": best, "error": "No plot area or plot ratio to run feasibility on"}

        resp = await client.post(f"{api_base}/api/v1/feasibility", json={
            "input": {
                "id": best["matched_plot_id"] if best else "brief",
                "name": spec["area_name"],
                "area_sqft": area_sqm * 10.7639,
                "ratio": ratio,
            },
            "mix_strategy": mix_strategy,
            "location_hint": spec["area_name"] or sample["text"],
        })
        if resp.status_code != 200:
            return {"spec": spec, "match": best, "error": f"feasibility returned {resp.status_code}: {resp.text[:500]}"}
        body = resp.json()
        return {
            "spec": spec,
            "match": best,
            "assumptions": body["assumptions"],
            "feasibility": body["results"][0],
        }


# ──────────────────────────────────────────────────────────────────
# OUTPUT FORMATTING
# ──────────────────────────────────────────────────────────────────

def format_result(sample: dict, result: dict) -> str:
    """Format a single sample result for console output."""
    lines = []
    lines.append(f"\n{'='*70}")
    lines.append(f"SAMPLE: {sample['name']}")
    lines.append(f"{'='*70}")
    lines.append(f"  Input:    {sample['text']}")

    spec = result.get("spec")
    if spec:
        lines.append(
            f"  Parsed:   area '{spec['area_name']}', plot {spec['plot_area_sqm']:,.0f} sqm, "
            f"GFA {spec['gfa_sqm']:,.0f} sqm"
        )

    match = result.get("match")
    if match:
        lines.append(
            f"  Match:    {match['matched_plot_id']} ({match['source']}), "
            f"confidence {match['confidence_score']}, area dev {match['area_deviation_pct']}%"
        )
    elif spec:
        lines.append("  Match:    none, using the brief's own dimensions")

    assumptions = result.get("assumptions")
    if assumptions:
        approx = " (approximation)" if assumptions["is_approximation"] else ""
        lines.append(f"  Market:   {assumptions['source']} / {assumptions['area_code'] or '-'}{approx}")

    if "error" in result:
        lines.append(f"  ERROR: {result['error']}")
        return "\n".join(lines)

    f = result["feasibility"]
    lines.append(f"\n  FEASIBILITY ({f['mix_strategy']}):")
    lines.append(f"    GFA:     {f['gfa']:,.0f} sqft, sellable {f['sellable_area']:,.0f} sqft")
    lines.append(f"    Floors:  {f['residential_floors']}, units {f['units']['total']}")
    lines.append(f"    GDV:     AED {f['gross_sales']:,.0f} (avg {f['avg_psf']:,.0f} psf)")
    lines.append(f"    Cost:    AED {f['total_cost']:,.0f}")
    lines.append(f"    Profit:  AED {f['gross_profit']:,.0f}, margin {f['gross_margin']:.1%}, ROI {f['roi']:.1%}")

    lines.append(f"\n  VERIFY:")
    for v in sample.get("verify", []):
        lines.append(f"    [ ] {v}")

    return "\n".join(lines)


# ──────────────────────────────────────────────────────────────────
# MAIN
# ──────────────────────────────────────────────────────────────────

async def main():
    parser = argparse.ArgumentParser(description="Run sample parcels through the HyperPlot pipeline")
    parser.add_argument("--api", default=None, help="API base URL (e.g., http://localhost:8000)")
    parser.add_argument("--samples", nargs="*", type=int, help="Run specific samples (1-indexed)")
    parser.add_argument("--mix", default="balanced", help="Mix strategy: investor, balanced, family")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    args = parser.parse_args()

    samples = SAMPLE_PARCELS
    if args.samples:
        samples = [SAMPLE_PARCELS[i-1] for i in args.samples if 1 <= i <= len(SAMPLE_PARCELS)]

    if not args.json:
        print(f"\nHyperPlot Sample Validation")
        print(f"Date: {datetime.now().strftime('%Y-%m-%d %H:%M')}")
        print(f"Mode: {'API ' + args.api if args.api else 'Direct Import'}")
        print(f"Samples: {len(samples)}")

    report = []
    for i, sample in enumerate(samples, 1):
        if not args.json:
            print(f"\n>>> Running sample {i}/{len(samples)}: {sample['name']}...")
        try:
            if args.api:
                result = await run_api(sample, args.api, args.mix)
            else:
                result = await run_direct(sample, args.mix)
        except Exception as e:
            result = {"error": f"{type(e).__name__}: {e}"}

        status = "error" if "error" in result else "ok"
        report.append({"sample": sample["name"], "status": status, **result})
        if not args.json:
            print(format_result(sample, result))

    if args.json:
        print(json.dumps(report, indent=2, default=str))
        return

    # Summary
    print(f"\n{'='*70}")
    print("SUMMARY")
    print(f"{'='*70}")
    ok = sum(1 for r in report if r["status"] == "ok")
    print(f"  Passed: {ok}/{len(report)}")
    for r in report:
        if r["status"] == "error":
            print(f"    - {r['sample']}: {r.get('error', 'unknown')}")
    print()


if __name__ == "__main__":
    asyncio.run(main())
