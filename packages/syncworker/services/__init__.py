"""Sync pipeline services."""
