"""
test_edit_session.py: unit tests for the in-memory store and field-by-field editing.

Tests cover:
  - Store reads return copies; single-field writes, appends, deletes
  - Store errors (unknown estimate, line item, field, rejected value)
  - Edit session states CLEAN -> DIRTY -> COMMITTING -> CLEAN
  - Preview totals from dirty values, no-op commits, failed commits
  - build_line_item from camelCase / snake_case catalog templates
"""

import threading

import pytest

from estimator.models.estimate import Estimate
from estimator.models.line_items import (
    EquipmentItem,
    LaborItem,
    MaterialItem,
    ToolsItem,
    build_line_item,
    canonical_category,
)
from estimator.services.edit_session import FieldState, LineItemEditSession
from estimator.services.estimate_store import (
    EstimateNotFoundError,
    LineItemFieldError,
    LineItemNotFoundError,
    PersistenceError,
)


@pytest.fixture
def seeded_store(store, scenario_estimate):
    store.save_estimate(scenario_estimate)
    return store


class RecordingPersistence:
    """Persistence double that records writes and can be told to fail."""

    def __init__(self, fail=False):
        self.fail = fail
        self.writes = []

    def update_line_item_field(self, estimate_id, line_item_id, field, value):
        self.writes.append((estimate_id, line_item_id, field, value))
        if self.fail:
            raise PersistenceError("store offline")
        return self.item.model_copy(update={field: value})

    def append_line_item(self, estimate_id, item):
        return item

    def delete_line_item(self, estimate_id, line_item_id):
        return None


# ===========================================================================
# Class 1: InMemoryEstimateStore
# ===========================================================================

class TestEstimateStore:

    def test_get_returns_copy(self, seeded_store):
        first = seeded_store.get_estimate("24-0001-V1")
        first.status = "won"
        assert seeded_store.get_estimate("24-0001-V1").status == "draft"

    def test_unknown_estimate(self, store):
        with pytest.raises(EstimateNotFoundError):
            store.get_estimate("missing")
        with pytest.raises(KeyError):
            store.delete_estimate("missing")

    def test_update_single_field(self, seeded_store):
        updated = seeded_store.update_line_item_field("24-0001-V1", "mat-1", "cost", 6)
        assert updated.cost == 6
        stored = seeded_store.get_line_item("24-0001-V1", "mat-1")
        assert stored.cost == 6
        assert stored.taxes == 8

    def test_update_keeps_raw_text(self, seeded_store):
        updated = seeded_store.update_line_item_field("24-0001-V1", "mat-1", "cost", "$6.")
        assert updated.cost == "$6."

    def test_unknown_line_item(self, seeded_store):
        with pytest.raises(LineItemNotFoundError):
            seeded_store.update_line_item_field("24-0001-V1", "nope", "cost", 1)

    @pytest.mark.parametrize("field", ["daily_cost", "id", "category", "estimate_id"])
    def test_field_not_editable(self, seeded_store, field):
        with pytest.raises(LineItemFieldError):
            seeded_store.update_line_item_field("24-0001-V1", "mat-1", field, 1)

    def test_rejected_value(self, seeded_store):
        with pytest.raises(PersistenceError):
            seeded_store.update_line_item_field("24-0001-V1", "mat-1", "material", {"bad": 1})

    def test_append_and_delete(self, seeded_store):
        added = seeded_store.append_line_item("24-0001-V1", ToolsItem(id="t-1", quantity=1, cost=5))
        assert added.estimate_id == "24-0001-V1"
        assert [i.id for i in seeded_store.get_estimate("24-0001-V1").items("Tools")] == ["t-1"]

        seeded_store.delete_line_item("24-0001-V1", "t-1")
        assert seeded_store.get_estimate("24-0001-V1").items("Tools") == []

    def test_find_and_replace_proposal(self, seeded_store):
        other = Estimate(id="24-0002-V1", proposal_no="24-0002")
        seeded_store.save_estimate(other)
        assert [e.id for e in seeded_store.find_by_proposal("24-0001")] == ["24-0001-V1"]

        seeded_store.replace_proposal("24-0001", [Estimate(id="24-0001-V1", proposal_no="24-0001", status="won")])
        assert seeded_store.get_estimate("24-0001-V1").status == "won"
        assert seeded_store.get_estimate("24-0002-V1").id == "24-0002-V1"

    def test_concurrent_writes_to_different_fields(self, seeded_store):
        """Each write runs under the store lock; no write is lost."""
        def write(field, value):
            seeded_store.update_line_item_field("24-0001-V1", "eq-1", field, value)

        threads = [
            threading.Thread(target=write, args=("daily_cost", 250)),
            threading.Thread(target=write, args=("times", 4)),
            threading.Thread(target=write, args=("fuel_additive_cost", 30)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        item = seeded_store.get_line_item("24-0001-V1", "eq-1")
        assert (item.daily_cost, item.times, item.fuel_additive_cost) == (250, 4, 30)


# ===========================================================================
# Class 2: LineItemEditSession
# ===========================================================================

class TestEditSession:

    def _session(self, store, line_item_id, constants):
        item = store.get_line_item("24-0001-V1", line_item_id)
        return LineItemEditSession(item, store, None, constants, "24-0001-V1")

    def test_clean_by_default(self, seeded_store, fringe_constants):
        session = self._session(seeded_store, "mat-1", fringe_constants)
        assert session.state("cost") == FieldState.CLEAN
        assert session.dirty_fields == []

    def test_dirty_value_drives_preview(self, seeded_store, fringe_constants):
        """(10 x 6) x 1.08 + 15 = 79.80 while typing; stored total stays 69.00."""
        session = self._session(seeded_store, "mat-1", fringe_constants)
        preview = session.edit("cost", "6")
        assert preview == pytest.approx(79.80)
        assert session.state("cost") == FieldState.DIRTY
        assert session.committed_total() == pytest.approx(69.00)

    def test_partial_input_previews_without_error(self, seeded_store, fringe_constants):
        session = self._session(seeded_store, "mat-1", fringe_constants)
        assert session.edit("cost", "-") == pytest.approx(15.00)

    def test_commit_writes_once_and_cleans(self, seeded_store, fringe_constants):
        session = self._session(seeded_store, "lab-1", fringe_constants)
        session.edit("days", "6")
        assert session.commit("days") is True
        assert session.state("days") == FieldState.CLEAN
        assert session.item.days == 6.0
        assert seeded_store.get_line_item("24-0001-V1", "lab-1").days == 6.0
        # 2 x 6 x 8 = 96h x 43 + 2 x 6 x 2 = 24h x 60.25 = 4128 + 1446
        assert session.committed_total() == pytest.approx(5574.00)

    def test_commit_clean_field_is_noop(self, seeded_store, fringe_constants):
        session = self._session(seeded_store, "mat-1", fringe_constants)
        assert session.commit("cost") is False

    def test_same_value_performs_no_write(self, fringe_constants):
        item = MaterialItem(id="m", estimate_id="e", quantity=10, cost=5)
        persistence = RecordingPersistence()
        persistence.item = item
        session = LineItemEditSession(item, persistence, constants=fringe_constants)

        session.edit("cost", "5.00")
        assert session.commit("cost") is False
        session.edit("quantity", 10)
        assert session.commit("quantity") is False
        assert persistence.writes == []
        assert session.state("cost") == FieldState.CLEAN

    def test_text_field_compared_exactly(self):
        item = MaterialItem(id="m", estimate_id="e", material="Gravel")
        persistence = RecordingPersistence()
        persistence.item = item
        session = LineItemEditSession(item, persistence)
        session.edit("material", "gravel")
        assert session.commit("material") is True
        assert persistence.writes == [("e", "m", "material", "gravel")]

    def test_numeric_commit_stores_coerced_value(self):
        item = EquipmentItem(id="q", estimate_id="e", daily_cost=200)
        persistence = RecordingPersistence()
        persistence.item = item
        session = LineItemEditSession(item, persistence)
        session.edit("daily_cost", "$1,250.00")
        session.commit("daily_cost")
        assert persistence.writes == [("e", "q", "daily_cost", 1250.0)]

    def test_failed_commit_stays_dirty(self):
        item = MaterialItem(id="m", estimate_id="e", quantity=10, cost=5)
        persistence = RecordingPersistence(fail=True)
        persistence.item = item
        session = LineItemEditSession(item, persistence)

        session.edit("cost", 7)
        with pytest.raises(PersistenceError):
            session.commit("cost")
        assert session.state("cost") == FieldState.DIRTY
        assert session.preview_item().cost == 7
        assert session.item.cost == 5

        persistence.fail = False
        assert session.commit("cost") is True
        assert session.state("cost") == FieldState.CLEAN

    def test_revert(self, seeded_store, fringe_constants):
        session = self._session(seeded_store, "mat-1", fringe_constants)
        session.edit("cost", 100)
        session.revert("cost")
        assert session.state("cost") == FieldState.CLEAN
        assert session.preview_total() == pytest.approx(69.00)

    def test_fields_are_independent(self, seeded_store, fringe_constants):
        session = self._session(seeded_store, "mat-1", fringe_constants)
        session.edit("cost", 6)
        session.edit("taxes", 0)
        session.commit("cost")
        assert session.state("taxes") == FieldState.DIRTY
        assert session.dirty_fields == ["taxes"]

    def test_commit_all(self, seeded_store, fringe_constants):
        session = self._session(seeded_store, "mat-1", fringe_constants)
        session.edit("cost", 6)
        session.edit("taxes", 8)
        assert session.commit_all() == ["cost"]

    def test_numeric_text_field_previews_without_error(self, seeded_store, fringe_constants):
        """A number typed into uom or sub_classification still yields a preview total."""
        equipment = self._session(seeded_store, "eq-1", fringe_constants)
        assert equipment.edit("uom", 5) == pytest.approx(1340.00)

        labor = self._session(seeded_store, "lab-1", fringe_constants)
        assert labor.edit("sub_classification", 7) == pytest.approx(4645.00)

    def test_numeric_text_field_rejected_on_commit(self, seeded_store, fringe_constants):
        session = self._session(seeded_store, "eq-1", fringe_constants)
        session.edit("uom", 5)
        with pytest.raises(PersistenceError):
            session.commit("uom")
        assert session.state("uom") == FieldState.DIRTY

    def test_unknown_field(self, seeded_store, fringe_constants):
        session = self._session(seeded_store, "mat-1", fringe_constants)
        with pytest.raises(LineItemFieldError):
            session.edit("days", 3)


# ===========================================================================
# Class 3: Catalog templates
# ===========================================================================

class TestBuildLineItem:

    def test_camel_case_template(self):
        item = build_line_item("Labor", {
            "classification": "Operator",
            "subClassification": "Foreman",
            "basePay": "42.50",
            "wCompPercent": 5,
            "payrollTaxesPercent": 10,
            "otPd": 2,
            "fringe": "Local 12",
            "catalogueId": "ignored",
        }, estimate_id="24-0001-V1")
        assert isinstance(item, LaborItem)
        assert item.base_pay == "42.50"
        assert item.sub_classification == "Foreman"
        assert item.ot_pd == 2
        assert item.estimate_id == "24-0001-V1"
        assert item.labor == "Operator-Local 12"
        assert not hasattr(item, "catalogue_id")

    def test_snake_case_template(self):
        item = build_line_item("equipment", {"equipment_machine": "Loader", "daily_cost": 300})
        assert isinstance(item, EquipmentItem)
        assert item.daily_cost == 300
        assert item.uom == "Daily"

    def test_legacy_tool_category(self):
        assert isinstance(build_line_item("Tool", {"tool": "Saw"}), ToolsItem)

    def test_category_in_template_cannot_override(self):
        item = build_line_item("Material", {"category": "Labor", "material": "Pipe"})
        assert item.category == "Material"

    def test_unique_ids(self):
        assert build_line_item("Disposal").id != build_line_item("Disposal").id

    def test_unknown_category(self):
        with pytest.raises(ValueError):
            canonical_category("Permits")
