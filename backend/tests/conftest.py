"""
conftest.py: shared pytest fixtures for the estimator backend test suite.

Calculator, ledger and store tests are pure unit tests; the route tests
drive the FastAPI app in-process through TestClient, with a fresh in-memory
store per test.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``estimator.*`` imports resolve correctly regardless of where pytest is
    invoked.
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any estimator imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Constants table fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def fringe_constants():
    """
    Minimal constants table.

      "Local 300"   -> $8.50/hr   (currency-formatted value)
      "Local 12"    -> 31.27/hr   (numeric value)
      "Broken"      -> "n/a"      (unparsable, resolves to 0)
      "Labor Color" -> #112233    (colour record, not a fringe)
    """
    return [
        {"type": "Fringe", "description": "Local 300", "value": "$8.50"},
        {"type": "Fringe", "description": "Local 12", "value": 31.27},
        {"type": "Fringe", "description": "Broken", "value": "n/a"},
        {"type": "Catalogue", "description": "Labor Color", "value": "", "color": "#112233"},
    ]


@pytest.fixture(scope="session")
def default_constants():
    """The shipped constants table from resources/default_constants.json."""
    from estimator.config import load_constants
    return load_constants()


# ---------------------------------------------------------------------------
# Line-item fixtures (the reference scenarios)
# ---------------------------------------------------------------------------

@pytest.fixture
def labor_item():
    """
    Non-per-diem labor line:
      basePay=30, quantity=2, days=5, otPd=2, dtPd=0,
      wComp=5%, payroll=10%, fringe "Local 300" ($8.50)
    Expected total 4645.00 (80h x 43.00 + 20h x 60.25).
    """
    from estimator.models.line_items import LaborItem
    return LaborItem(
        id="lab-1",
        estimate_id="24-0001-V1",
        classification="Laborer",
        fringe="Local 300",
        base_pay=30,
        quantity=2,
        days=5,
        ot_pd=2,
        dt_pd=0,
        w_comp_percent=5,
        payroll_taxes_percent=10,
    )


@pytest.fixture
def equipment_item():
    """Daily rental: 200/day x 2 units x 3 days + fuel 20 x 2 + delivery 50 x 2 = 1340.00."""
    from estimator.models.line_items import EquipmentItem
    return EquipmentItem(
        id="eq-1",
        estimate_id="24-0001-V1",
        equipment_machine="Mini Excavator",
        uom="Daily",
        daily_cost=200,
        weekly_cost=900,
        monthly_cost=3000,
        quantity=2,
        times=3,
        fuel_additive_cost=20,
        delivery_pickup=50,
    )


@pytest.fixture
def material_item():
    """10 x $5 = 50, +8% tax = 54, + $15 delivery = 69.00."""
    from estimator.models.line_items import MaterialItem
    return MaterialItem(
        id="mat-1",
        estimate_id="24-0001-V1",
        material="Gravel",
        quantity=10,
        cost=5,
        taxes=8,
        delivery_pickup=15,
    )


@pytest.fixture
def scenario_estimate(labor_item, equipment_item, material_item):
    """
    Estimate with the three lines above and a "10%" markup.
      subtotal = 4645 + 1340 + 69 = 6054.00, grand total = 6659.40
    """
    from estimator.models.estimate import Estimate
    return Estimate(
        id="24-0001-V1",
        proposal_no="24-0001",
        markup_percent="10%",
        line_items={
            "Labor": [labor_item],
            "Equipment": [equipment_item],
            "Material": [material_item],
        },
    )


# ---------------------------------------------------------------------------
# Store / API fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store():
    from estimator.services.estimate_store import InMemoryEstimateStore
    return InMemoryEstimateStore()


@pytest.fixture
def client():
    """TestClient over the app; entering the context runs the lifespan (fresh store)."""
    pytest.importorskip("httpx")
    from fastapi.testclient import TestClient
    from estimator.main import app
    with TestClient(app) as test_client:
        yield test_client
