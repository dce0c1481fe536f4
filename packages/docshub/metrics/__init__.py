"""Prometheus metrics for the sync pipeline."""
