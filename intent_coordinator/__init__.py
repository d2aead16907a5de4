"""Swap intent coordinator.

Turns free-text swap requests into deterministic, machine-checkable trading intents.
"""
