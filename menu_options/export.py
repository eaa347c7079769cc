from __future__ import annotations

import argparse
import csv
import json
from pathlib import Path
from typing import Any, Iterable, List, Optional

from .bootstrap import load_catalog
from .index import catalog_lookup
from .ingest import get_table, load_dataset
from .inspect import option_rows, order_line_rows, summary


def _write_json(path: Path, obj: Any) -> None:
    path.write_text(json.dumps(obj, ensure_ascii=False, indent=2, default=str) + "\n", encoding="utf-8")


def _write_jsonl(path: Path, rows: Iterable[dict]) -> None:
    with path.open("w", encoding="utf-8") as f:
        for row in rows:
            f.write(json.dumps(row, ensure_ascii=False, default=str))
            f.write("\n")


def _write_csv(path: Path, rows: list[dict]) -> None:
    with path.open("w", newline="", encoding="utf-8") as f:
        if not rows:
            # Write an empty file with no header.
            return
        fieldnames = list(rows[0].keys())
        w = csv.DictWriter(f, fieldnames=fieldnames, extrasaction="ignore")
        w.writeheader()
        for r in rows:
            w.writerow(r)


def load_order_lines(path: str) -> List[dict]:
    """Order lines as exported from order_items (a bare list or an {"order_items": [...]} document)."""
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Order lines file not found: {path}")
    data = json.loads(file_path.read_text(encoding="utf-8"))
    if isinstance(data, list):
        return [r for r in data if isinstance(r, dict)]
    if isinstance(data, dict):
        return get_table(data, "order_items")
    raise ValueError(f"Order lines file must contain a list or an object: {path}")


def export_all(inp: str = "data/order_items.json", catalog: Optional[str] = None, out_dir: str = "out") -> None:
    lines = load_order_lines(inp)
    lookup = None
    cat = None
    if catalog:
        cat = load_catalog(catalog)
        lookup = catalog_lookup(cat)

    outp = Path(out_dir)
    outp.mkdir(parents=True, exist_ok=True)

    rows = order_line_rows(lines, lookup)
    _write_csv(outp / "order_lines.csv", rows)
    _write_jsonl(outp / "order_lines.jsonl", rows)

    if cat is not None:
        opts = option_rows(cat)
        _write_csv(outp / "options.csv", opts)
        _write_jsonl(outp / "options.jsonl", opts)

    _write_json(outp / "summary.json", summary(rows))


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Export order lines with decoded customization notes (CSV/JSONL/summary).")
    p.add_argument("--in", dest="inp", default="data/order_items.json", help="Order lines JSON (default: data/order_items.json)")
    p.add_argument("--catalog", dest="catalog", default=None, help="Catalog snapshot used to resolve id payloads")
    p.add_argument("--out", dest="out", default="out", help="Output directory (default: out/)")
    args = p.parse_args(argv)

    export_all(inp=args.inp, catalog=args.catalog, out_dir=args.out)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
