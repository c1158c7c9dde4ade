#!/usr/bin/env python3
"""
Validate a stub shade catalog against docs/catalog.schema.json (Draft 2020-12),
then through the ingestion models (rows the service would skip, duplicate ids).
Usage:
  python tools/validate_catalog.py catalog.json docs/catalog.schema.json
"""
import sys
import json
from collections import Counter
from pathlib import Path
from typing import Dict, List

from jsonschema import validate, Draft202012Validator

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from caseconfig.catalog.models import parse_brands  # noqa: E402

FAMILY_KEYS = ("teeth-shade", "gum-shade")


def _family_lists(data: Dict) -> Dict[str, List]:
    """Flatten shared and per-subject sections into 'label' -> brand rows."""
    out = {}
    for key, value in data.items():
        if key in FAMILY_KEYS:
            out[key] = value
        else:
            for fam, rows in (value or {}).items():
                out[f"{key}/{fam}"] = rows
    return out


def check_catalog(data: Dict) -> List[str]:
    """Problems the schema cannot express. Empty list means clean."""
    problems = []
    for label, rows in _family_lists(data).items():
        brands = parse_brands(rows)
        if len(brands) != len(rows):
            problems.append(f"{label}: {len(rows) - len(brands)} brand row(s) would be skipped")
        for brand_id, n in Counter(b.id for b in brands).items():
            if n > 1:
                problems.append(f"{label}: duplicate brand id {brand_id}")
        for brand in brands:
            raw = next((r for r in rows if r.get("id") == brand.id), {})
            raw_variants = raw.get("shades", raw.get("variants")) or []
            if len(brand.variants) != len(raw_variants):
                problems.append(f"{label}: brand {brand.id} has invalid shade rows")
            for variant_id, n in Counter(v.id for v in brand.variants).items():
                if n > 1:
                    problems.append(f"{label}: brand {brand.id} duplicate shade id {variant_id}")
    return problems


def main(cat_path: str, schema_path: str) -> int:
    with open(schema_path, encoding="utf-8") as f:
        schema = json.load(f)
    with open(cat_path, encoding="utf-8") as f:
        data = json.load(f)
    # Validate the schema itself, then the data
    Draft202012Validator.check_schema(schema)
    validate(instance=data, schema=schema)
    problems = check_catalog(data)
    for p in problems:
        print(f"[catalog] {p}", file=sys.stderr)
    if problems:
        return 1
    print("[catalog.schema] OK")
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("usage: validate_catalog.py <catalog.json> <schema.json>", file=sys.stderr)
        sys.exit(2)
    sys.exit(main(sys.argv[1], sys.argv[2]))
