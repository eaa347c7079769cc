from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from rapidfuzz import fuzz, process

from .models import (
    CatalogItem,
    CatalogOption,
    Discount,
    DisplayPair,
    MenuCatalog,
    MenuItem,
    NameCandidate,
    NameMatch,
    Option,
    SelectionSet,
)
from .selection import select
from .utils import _trace, normalize_text, trace_enabled


FUZZY_ACCEPT_THRESHOLD = 90.0
FUZZY_ACCEPT_GAP = 5.0
FUZZY_LIMIT = 3


def build_catalog(
    items: Dict[str, MenuItem],
    options: List[Option],
    discounts: Dict[str, Discount],
    unavailable_choices: Optional[Dict[str, Dict[str, str]]] = None,
) -> MenuCatalog:
    """`options` must already be in display order."""
    catalog = MenuCatalog(items=items, discounts=discounts)

    for option in options:
        catalog.options[option.id] = option
        catalog.option_ids_by_item.setdefault(option.menu_item_id or "", []).append(option.id)

    for oid, names in (unavailable_choices or {}).items():
        if oid in catalog.options and names:
            catalog.unavailable_choices[oid] = dict(names)

    return catalog


def options_for_item(catalog: MenuCatalog, menu_item_id: str) -> List[Option]:
    return [catalog.options[oid] for oid in catalog.option_ids_by_item.get(menu_item_id, []) if oid in catalog.options]


def discount_for_item(catalog: MenuCatalog, menu_item_id: str) -> Optional[Discount]:
    item = catalog.items.get(menu_item_id)
    if item is None or item.discount_id is None:
        return None
    return catalog.discounts.get(item.discount_id)


def catalog_lookup(catalog: MenuCatalog) -> Dict[str, CatalogOption]:
    """
    option_id -> CatalogOption, the lookup contract consumed by decode_notes.
    Unavailable choices are included so historical id payloads keep resolving.
    """
    lookup: Dict[str, CatalogOption] = {}
    for oid, option in catalog.options.items():
        items = [CatalogItem(id=c.id, name=c.name) for c in option.choices]
        items.extend(CatalogItem(id=cid, name=name) for cid, name in catalog.unavailable_choices.get(oid, {}).items())
        lookup[oid] = CatalogOption(label=option.label, items=items)
    return lookup


def match_name(query: str, names: Dict[str, str]) -> NameMatch:
    """
    Match typed text against {id: display name}.

    Order: normalized equality, then the longest name contained in the query,
    then rapidfuzz WRatio. A fuzzy hit is only accepted when it clears the
    threshold and beats the runner-up by FUZZY_ACCEPT_GAP.
    """
    norm_q = normalize_text(query)
    if not norm_q:
        return NameMatch(ok=False, query=query, reason="empty_query")

    normalized = {eid: normalize_text(name) for eid, name in names.items()}
    normalized = {eid: n for eid, n in normalized.items() if n}

    exact = [eid for eid, n in normalized.items() if n == norm_q]
    if len(exact) == 1:
        return NameMatch(ok=True, query=query, matched_id=exact[0], matched_name=names[exact[0]], reason="exact")

    contained = sorted(
        (eid for eid, n in normalized.items() if f" {n} " in f" {norm_q} "),
        key=lambda eid: len(normalized[eid]),
        reverse=True,
    )
    if contained and (len(contained) == 1 or len(normalized[contained[0]]) > len(normalized[contained[1]])):
        eid = contained[0]
        return NameMatch(ok=True, query=query, matched_id=eid, matched_name=names[eid], reason="contains")

    scored = process.extract(norm_q, normalized, scorer=fuzz.WRatio, limit=FUZZY_LIMIT)
    candidates = [NameCandidate(id=key, name=names[key], score=float(score)) for _, score, key in scored]
    if not candidates:
        return NameMatch(ok=False, query=query, reason="no_match")

    best = candidates[0]
    runner_up = candidates[1].score if len(candidates) > 1 else 0.0
    if best.score >= FUZZY_ACCEPT_THRESHOLD and best.score - runner_up >= FUZZY_ACCEPT_GAP:
        return NameMatch(
            ok=True,
            query=query,
            matched_id=best.id,
            matched_name=best.name,
            reason="fuzzy_accept",
            candidates=candidates,
        )
    return NameMatch(ok=False, query=query, reason="fuzzy_ambiguous", candidates=candidates)


def resolve_option(catalog: MenuCatalog, menu_item_id: str, query: str, *, debug: bool = False) -> NameMatch:
    """Match an option label among the options of one menu item."""
    result = match_name(query, {o.id: o.label for o in options_for_item(catalog, menu_item_id)})
    _trace(
        trace_enabled(debug),
        "index.resolve",
        {"entity_type": "option", "menu_item_id": menu_item_id, "query": query, "reason": result.reason, "matched_id": result.matched_id},
    )
    return result


def resolve_choice(option: Option, query: str, *, debug: bool = False) -> NameMatch:
    """Match a choice name among the available choices of one option."""
    result = match_name(query, {c.id: c.name for c in option.choices})
    _trace(
        trace_enabled(debug),
        "index.resolve",
        {"entity_type": "choice", "option_id": option.id, "query": query, "reason": result.reason, "matched_id": result.matched_id},
    )
    return result


def selection_from_pairs(
    catalog: MenuCatalog,
    menu_item_id: str,
    pairs: Iterable[DisplayPair],
    *,
    debug: bool = False,
) -> Tuple[SelectionSet, List[DisplayPair]]:
    """
    Turn "label: value" pairs (typed by staff, or read back from text notes)
    into a selection against today's catalog. Values are split on "," the way
    the encoder joins them. Returns (selection, unmatched pairs).
    """
    trace = trace_enabled(debug)
    selection = SelectionSet()
    unmatched: List[DisplayPair] = []

    for pair in pairs:
        if not pair.label:
            unmatched.append(pair)
            continue
        om = resolve_option(catalog, menu_item_id, pair.label, debug=debug)
        if not om.ok or om.matched_id is None:
            unmatched.append(pair)
            _trace(trace, "selection.unmatched", {"label": pair.label, "reason": om.reason})
            continue

        option = catalog.options[om.matched_id]
        by_id = {c.id: c for c in option.choices}
        missed: List[str] = []
        for name in [v.strip() for v in pair.value.split(",") if v.strip()]:
            cm = resolve_choice(option, name, debug=debug)
            if cm.ok and cm.matched_id in by_id:
                selection = select(selection, option, by_id[cm.matched_id], debug=debug)
            else:
                missed.append(name)
        if missed:
            unmatched.append(DisplayPair(label=pair.label, value=", ".join(missed)))
            _trace(trace, "selection.unmatched", {"label": pair.label, "values": missed})

    return selection, unmatched
