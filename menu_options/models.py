from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class SelectionType(str, Enum):
    # Values match the backend's menu_options.selection_type column.
    EXACTLY_ONE = "single_required"
    AT_MOST_ONE = "single_optional"
    UP_TO_N = "multiple"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class Choice(BaseModel):
    id: str
    owner_option_id: str
    name: str
    additional_price: Decimal = Decimal("0")
    is_available: bool = True
    sort_order: int = 0


class Option(BaseModel):
    id: str
    menu_item_id: Optional[str] = None
    label: str
    selection_type: SelectionType
    max_selections: int = Field(default=1, ge=1)  # only meaningful for UP_TO_N
    is_required: bool = False
    sort_order: int = 0
    choices: List[Choice] = Field(default_factory=list)  # available choices only

    @property
    def cap(self) -> int:
        if self.selection_type == SelectionType.UP_TO_N:
            return self.max_selections
        return 1


class SelectedChoice(BaseModel):
    choice_id: str
    choice_name: str
    additional_price: Decimal = Decimal("0")


class OptionSelection(BaseModel):
    option_id: str
    option_label: str
    choices: List[SelectedChoice] = Field(default_factory=list)


class SelectionSet(BaseModel):
    # option_id -> selection, insertion ordered. Only menu_options.selection builds new ones.
    options: Dict[str, OptionSelection] = Field(default_factory=dict)


class Discount(BaseModel):
    id: Optional[str] = None
    type: DiscountType
    value: Decimal
    name: Optional[str] = None
    is_active: bool = True
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class LineItem(BaseModel):
    menu_id: Optional[str] = None
    name: Optional[str] = None
    base_unit_price: Decimal
    selection: SelectionSet = Field(default_factory=SelectionSet)
    quantity: int = Field(default=1, ge=1)
    free_text_note: Optional[str] = None


class OrderTotals(BaseModel):
    subtotal: Decimal
    delivery_fee: Decimal
    free_delivery_threshold: Decimal
    is_free_delivery: bool
    total: Decimal
    minimum_order_met: bool
    minimum_order_amount: Decimal


class CatalogItem(BaseModel):
    id: str
    name: str


class CatalogOption(BaseModel):
    """Decoder-side view of an option: label plus every known choice id/name."""

    label: str
    items: List[CatalogItem] = Field(default_factory=list)


class MenuItem(BaseModel):
    id: str
    name: str
    base_price: Decimal = Decimal("0")
    discount_id: Optional[str] = None
    tenant_id: Optional[str] = None


class MenuCatalog(BaseModel):
    # Primary tables
    items: Dict[str, MenuItem] = Field(default_factory=dict)
    options: Dict[str, Option] = Field(default_factory=dict)
    discounts: Dict[str, Discount] = Field(default_factory=dict)

    # menu_item_id -> option ids, ordered by sort_order
    option_ids_by_item: Dict[str, List[str]] = Field(default_factory=dict)
    # option_id -> {choice_id: name} for choices not currently available (old notes still reference them)
    unavailable_choices: Dict[str, Dict[str, str]] = Field(default_factory=dict)


class NameCandidate(BaseModel):
    id: str
    name: str
    score: float


class NameMatch(BaseModel):
    ok: bool
    query: str
    matched_id: Optional[str] = None
    matched_name: Optional[str] = None
    reason: str  # "exact" | "contains" | "fuzzy_accept" | "fuzzy_ambiguous" | "no_match" | "empty_query"
    candidates: List[NameCandidate] = Field(default_factory=list)


DecodeStrategy = Literal[
    "options_json",
    "options_text",
    "user_notes",
    "bare_json",
    "legacy_colon",
    "plain",
    "empty",
]


class DisplayPair(BaseModel):
    label: Optional[str] = None
    value: str


class DecodedNotes(BaseModel):
    strategy: DecodeStrategy
    pairs: List[DisplayPair] = Field(default_factory=list)
    text: Optional[str] = None
    heading: Optional[str] = None


class ToolError(BaseModel):
    code: str  # "MISSING_REQUIRED" | "INVALID_ARGUMENT" | "MINIMUM_ORDER_NOT_MET" | ...
    message: str


class ToolResult(BaseModel):
    ok: bool
    tool: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[ToolError] = None
    candidates: List[Dict[str, Any]] = Field(default_factory=list)
    meta: Dict[str, Any] = Field(default_factory=dict)


class MissingRequiredOptionError(ValueError):
    def __init__(self, options: List[Option]):
        self.options = list(options)
        labels = ", ".join(o.label for o in self.options)
        super().__init__(f"Missing required option(s): {labels}")
