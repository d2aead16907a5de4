"""Exact fixed-point amount handling (no floats in money paths)."""
