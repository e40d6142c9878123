"""Shared constants, models and file helpers."""
