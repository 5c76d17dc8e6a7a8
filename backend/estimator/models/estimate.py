"""
Estimate, version and chart models.

An Estimate owns its line items grouped by category. Totals are never
stored on line items; EstimateVersion snapshots carry the computed total
of an estimate at the time it was listed.
"""
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from estimator.models.line_items import LineItem, LineItemBase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Constant(BaseModel):
    """One row of the constants table: a fringe rate, a section colour or a status."""
    type: str = ""
    description: str = ""
    value: Optional[Union[float, str]] = None
    color: Optional[str] = None


class Estimate(BaseModel):
    id: str
    proposal_no: str
    customer_id: Optional[str] = None
    markup_percent: Optional[Union[float, str]] = 0.0  # 10 or "10%"
    fringe: Optional[str] = None  # estimate-wide fringe selection
    status: str = "draft"
    line_items: Dict[str, List[LineItem]] = Field(default_factory=dict)
    version_number: int = 1
    is_change_order: bool = False
    parent_version_id: Optional[str] = None
    date: datetime = Field(default_factory=_utcnow)
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("line_items", mode="after")
    @classmethod
    def _file_by_category(cls, line_items: Dict[str, List[LineItem]]) -> Dict[str, List[LineItem]]:
        # Keys always match the items' own category.
        grouped: Dict[str, List[LineItem]] = {}
        for items in line_items.values():
            for item in items:
                grouped.setdefault(item.category, []).append(item)
        return grouped

    def items(self, category: str) -> List[LineItemBase]:
        return self.line_items.get(category, [])

    def iter_line_items(self) -> Iterator[LineItemBase]:
        for items in self.line_items.values():
            yield from items

    def find_line_item(self, line_item_id: str) -> Optional[LineItemBase]:
        for item in self.iter_line_items():
            if item.id == line_item_id:
                return item
        return None


class EstimateVersion(BaseModel):
    """Immutable listing entry for one version or change order."""
    model_config = ConfigDict(frozen=True)

    id: str
    proposal_no: str
    version_number: int
    date: datetime
    total_amount: float = 0.0
    status: str = "draft"
    is_change_order: bool = False
    parent_version_id: Optional[str] = None

    @classmethod
    def from_estimate(cls, estimate: Estimate, total_amount: float) -> "EstimateVersion":
        return cls(
            id=estimate.id,
            proposal_no=estimate.proposal_no,
            version_number=estimate.version_number,
            date=estimate.date,
            total_amount=total_amount,
            status=estimate.status,
            is_change_order=estimate.is_change_order,
            parent_version_id=estimate.parent_version_id,
        )


class ChartSlice(BaseModel):
    category_id: str
    label: str
    value: float
    color: str


class EstimateSummary(BaseModel):
    """Aggregated totals for one estimate, as fed to the chart and the version list."""
    slices: List[ChartSlice] = Field(default_factory=list)
    category_totals: Dict[str, float] = Field(default_factory=dict)
    sub_total: float = 0.0
    markup_percent: float = 0.0
    markup_amount: float = 0.0
    grand_total: float = 0.0
