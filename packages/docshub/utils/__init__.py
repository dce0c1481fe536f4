"""Utility helpers shared by the sync pipeline."""
