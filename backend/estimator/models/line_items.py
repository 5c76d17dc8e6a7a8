"""
Line-item records, one pydantic model per estimate category.

Numeric fields keep the raw value the estimator typed (a number, a string
such as "$1,200" or nothing at all). Calculators coerce them at read time,
so a half-typed value is stored exactly as entered and never rejected.
"""
import re
import uuid
from typing import Annotated, Any, ClassVar, Dict, FrozenSet, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from estimator.config import CATEGORY_ALIASES, CATEGORY_ORDER, DEFAULT_EQUIPMENT_UOM

RawNumber = Optional[Union[float, str]]

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _new_id() -> str:
    return uuid.uuid4().hex


class LineItemBase(BaseModel):
    """Fields shared by every category."""
    model_config = ConfigDict(extra="ignore")

    NUMERIC_FIELDS: ClassVar[FrozenSet[str]] = frozenset({"quantity"})

    id: str = Field(default_factory=_new_id)
    estimate_id: Optional[str] = None
    quantity: RawNumber = None
    classification: Optional[str] = None
    sub_classification: Optional[str] = None

    @classmethod
    def editable_fields(cls) -> FrozenSet[str]:
        return frozenset(cls.model_fields) - {"id", "estimate_id", "category"}

    @classmethod
    def is_numeric_field(cls, field: str) -> bool:
        return field in cls.NUMERIC_FIELDS


class LaborItem(LineItemBase):
    NUMERIC_FIELDS: ClassVar[FrozenSet[str]] = frozenset({
        "quantity", "base_pay", "days", "ot_pd", "dt_pd",
        "w_comp_percent", "payroll_taxes_percent",
    })

    category: Literal["Labor"] = "Labor"
    labor: Optional[str] = None
    fringe: Optional[str] = None            # overrides the estimate-wide fringe when set
    base_pay: RawNumber = None
    days: RawNumber = None
    ot_pd: RawNumber = None                 # overtime hours per day
    dt_pd: RawNumber = None                 # double-time hours per day
    w_comp_percent: RawNumber = None
    payroll_taxes_percent: RawNumber = None

    @model_validator(mode="after")
    def _default_label(self) -> "LaborItem":
        if not self.labor and self.classification:
            self.labor = f"{self.classification}-{self.fringe}" if self.fringe else self.classification
        return self


class EquipmentItem(LineItemBase):
    NUMERIC_FIELDS: ClassVar[FrozenSet[str]] = frozenset({
        "quantity", "times", "daily_cost", "weekly_cost", "monthly_cost",
        "fuel_additive_cost", "delivery_pickup",
    })

    category: Literal["Equipment"] = "Equipment"
    equipment_machine: Optional[str] = None
    supplier: Optional[str] = None
    uom: Optional[str] = DEFAULT_EQUIPMENT_UOM
    times: RawNumber = None                 # rental periods in the chosen UOM
    daily_cost: RawNumber = None
    weekly_cost: RawNumber = None
    monthly_cost: RawNumber = None
    fuel_additive_cost: RawNumber = None
    delivery_pickup: RawNumber = None


class MaterialItem(LineItemBase):
    NUMERIC_FIELDS: ClassVar[FrozenSet[str]] = frozenset({"quantity", "cost", "taxes", "delivery_pickup"})

    category: Literal["Material"] = "Material"
    material: Optional[str] = None
    supplier: Optional[str] = None
    uom: Optional[str] = None
    cost: RawNumber = None
    taxes: RawNumber = None                 # percent
    delivery_pickup: RawNumber = None


class ToolsItem(LineItemBase):
    NUMERIC_FIELDS: ClassVar[FrozenSet[str]] = frozenset({"quantity", "cost", "days", "taxes"})

    category: Literal["Tools"] = "Tools"
    tool: Optional[str] = None
    supplier: Optional[str] = None
    uom: Optional[str] = None
    cost: RawNumber = None
    days: RawNumber = None
    taxes: RawNumber = None                 # shown in the table, not part of the total


class OverheadItem(LineItemBase):
    NUMERIC_FIELDS: ClassVar[FrozenSet[str]] = frozenset({
        "quantity", "days", "hours", "hourly_rate", "daily_rate",
    })

    category: Literal["Overhead"] = "Overhead"
    overhead: Optional[str] = None
    days: RawNumber = None
    hours: RawNumber = None
    hourly_rate: RawNumber = None
    daily_rate: RawNumber = None


class SubcontractorItem(LineItemBase):
    NUMERIC_FIELDS: ClassVar[FrozenSet[str]] = frozenset({"quantity", "cost", "days"})

    category: Literal["Subcontractor"] = "Subcontractor"
    subcontractor: Optional[str] = None
    uom: Optional[str] = None
    cost: RawNumber = None
    days: RawNumber = None


class DisposalItem(LineItemBase):
    NUMERIC_FIELDS: ClassVar[FrozenSet[str]] = frozenset({"quantity", "cost"})

    category: Literal["Disposal"] = "Disposal"
    disposal_and_haul_off: Optional[str] = None
    uom: Optional[str] = None
    cost: RawNumber = None


class MiscellaneousItem(LineItemBase):
    NUMERIC_FIELDS: ClassVar[FrozenSet[str]] = frozenset({"quantity", "cost", "days"})

    category: Literal["Miscellaneous"] = "Miscellaneous"
    item: Optional[str] = None
    uom: Optional[str] = None
    cost: RawNumber = None
    days: RawNumber = None


LineItem = Annotated[
    Union[
        LaborItem,
        EquipmentItem,
        MaterialItem,
        ToolsItem,
        OverheadItem,
        SubcontractorItem,
        DisposalItem,
        MiscellaneousItem,
    ],
    Field(discriminator="category"),
]

LINE_ITEM_MODELS: Dict[str, type] = {
    "Labor": LaborItem,
    "Equipment": EquipmentItem,
    "Material": MaterialItem,
    "Tools": ToolsItem,
    "Overhead": OverheadItem,
    "Subcontractor": SubcontractorItem,
    "Disposal": DisposalItem,
    "Miscellaneous": MiscellaneousItem,
}


def canonical_category(name: str) -> str:
    """
    Map a user or catalog category name onto one of CATEGORY_ORDER.

    Matching ignores case and surrounding whitespace, and accepts the
    legacy singular "Tool". Raises ValueError for anything else.
    """
    key = (name or "").strip().lower()
    for category in CATEGORY_ORDER:
        if category.lower() == key:
            return category
    alias = CATEGORY_ALIASES.get(key)
    if alias:
        for category in CATEGORY_ORDER:
            if category.lower() == alias:
                return category
    raise ValueError(f"Unknown line-item category: {name!r}")


def snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def build_line_item(category: str, template: Optional[Dict[str, Any]] = None,
                    estimate_id: Optional[str] = None) -> LineItemBase:
    """
    Turn a catalog template (or a manual-entry dict) into a typed line item.

    Keys may be camelCase (``basePay``) or snake_case (``base_pay``); keys
    that the category does not define are dropped.
    """
    category = canonical_category(category)
    model = LINE_ITEM_MODELS[category]

    data: Dict[str, Any] = {}
    for key, value in (template or {}).items():
        field = snake_case(str(key))
        if field in model.model_fields and field != "category":
            data[field] = value

    data["category"] = category
    if estimate_id is not None:
        data["estimate_id"] = estimate_id
    return model(**data)
