# tests/conftest.py
"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: conftest.py
Description: Shared fixtures for the fare decision tests.
"""

from typing import List

import pytest

from drive_decision.core.config import SettingsSnapshot
from drive_decision.core.models import OcrLine, Rect


@pytest.fixture
def default_settings() -> SettingsSnapshot:
    """fuel 24, city 10, hwy 14, target 90/h, no wear, no fee."""
    return SettingsSnapshot()


@pytest.fixture
def trip_lines() -> List[OcrLine]:
    """Two self-contained readings: 5 min / 1.2 km pickup, 12 min / 6.0 km trip."""
    return [
        OcrLine("PICKUP (min): 5 min | 1.2 km", Rect(40, 300, 420, 340)),
        OcrLine("TOTAL (max): 12 min | 6.0 km", Rect(40, 520, 420, 560)),
    ]


@pytest.fixture
def offer_dump() -> str:
    return (
        "APP_AL_FRENTE: sinet.startup.inDriver\n"
        "CLASS: android.widget.FrameLayout\n"
        "TOTAL_TEXTOS: 4\n"
        "-----\n"
        "Aceptar por MXN70\n"
        "MXN55\n"
        "MXN62\n"
    )
