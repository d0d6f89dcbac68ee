"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/__init__.py
Description: Fare decision engine for ride-hailing offer screens.
"""

__version__ = "1.0.0"
