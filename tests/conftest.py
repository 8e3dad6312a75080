"""
Pytest Configuration and Fixtures

Shared fixtures for the coagulation engine and API tests.
"""
import pytest
import numpy as np
from datetime import datetime, timezone
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from rotem_assist.core.coagulation import (
    ClinicalContext,
    PRO_T3_V3,
    RotemDecisionEngine,
    RotemPanel,
)

FIXED_TIME = datetime(2024, 10, 30, 8, 15, tzinfo=timezone.utc)


@pytest.fixture
def fixed_time() -> datetime:
    return FIXED_TIME


@pytest.fixture
def thresholds():
    """Default institutional protocol table."""
    return PRO_T3_V3


@pytest.fixture
def engine() -> RotemDecisionEngine:
    """Engine with a frozen clock so reports compare equal."""
    return RotemDecisionEngine(clock=lambda: FIXED_TIME)


@pytest.fixture
def bleeding_context() -> ClinicalContext:
    """80 kg patient with active diffuse bleeding."""
    return ClinicalContext(weight_kg=80, active_bleeding=True)


@pytest.fixture
def quiet_context() -> ClinicalContext:
    """80 kg patient, no bleeding."""
    return ClinicalContext(weight_kg=80)


@pytest.fixture
def normal_panel() -> RotemPanel:
    """Dissection-phase panel with every value in range."""
    return RotemPanel(
        phase="DISECCION",
        ct_extem=65, cft_extem=110, a5_extem=42, a10_extem=50, mcf_extem=58,
        ml_extem=5, cli30_extem=99, cli60_extem=95,
        ct_fibtem=60, a5_fibtem=12, a10_fibtem=14, mcf_fibtem=16,
        ct_intem=190, ct_heptem=185, a5_aptem=43,
    )


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded generator for randomized sweeps."""
    return np.random.default_rng(20241030)
