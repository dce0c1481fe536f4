"""Packages directory for the docs portal repository sync pipeline.

This directory contains two packages:

- docshub: Configuration, schema, data access, fetchers and parsers
- syncworker: Sync services, Celery tasks and the admin CLI

syncworker depends on docshub; docshub never imports syncworker.
"""
