"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/services/__init__.py
Description: Pipeline stages of the fare decision engine.
"""
