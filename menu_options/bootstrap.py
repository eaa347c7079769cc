from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional, Tuple

from .index import build_catalog
from .ingest import load_dataset
from .models import MenuCatalog
from .normalize import normalize_catalog


DEFAULT_CATALOG_PATH = "data/catalog.json"


def _default_path() -> str:
    return os.getenv("MENU_OPTIONS_CATALOG") or DEFAULT_CATALOG_PATH


def load_catalog(catalog_path: Optional[str] = None) -> MenuCatalog:
    """
    Load a catalog snapshot JSON, normalize, build the index and return MenuCatalog.
    Must raise clear, actionable errors for invalid input files.
    """
    path = catalog_path or _default_path()
    try:
        dataset = load_dataset(path)
    except FileNotFoundError as e:
        # Ensure the path is present in the message
        raise FileNotFoundError(str(e)) from e
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in catalog file: {path}") from e

    items, options, discounts, unavailable = normalize_catalog(dataset)
    if not options:
        raise ValueError("No menu options found after normalization.")

    return build_catalog(items, options, discounts, unavailable)


def load_catalog_with_summary(catalog_path: Optional[str] = None) -> Tuple[MenuCatalog, Dict[str, Any]]:
    """
    Same as load_catalog, but also returns a small summary dict for debug / demo:
      - total_menu_items
      - total_options
      - total_choices (available only)
      - total_discounts
      - notes about options a customer cannot satisfy
    """
    catalog = load_catalog(catalog_path)

    notes = []
    for option in catalog.options.values():
        if option.is_required and not option.choices:
            notes.append(f"Required option '{option.label}' ({option.id}) has no available choices")

    summary = {
        "total_menu_items": len(catalog.items),
        "total_options": len(catalog.options),
        "total_choices": sum(len(o.choices) for o in catalog.options.values()),
        "total_discounts": len(catalog.discounts),
        "notes": notes,
    }

    return catalog, summary
