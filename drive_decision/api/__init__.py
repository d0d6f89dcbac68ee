"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/api/__init__.py
Description: HTTP surface for the fare decision engine.
"""

from .server import APIServer

__all__ = ['APIServer']
