"""Shared library for the docs portal repository sync pipeline.

Holds configuration, the relational schema and its data-access classes,
source repository fetchers, content parsers and small utilities. The
``syncworker`` package builds the reconciliation services on top of it.
"""
