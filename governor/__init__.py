"""Structured check and audit tooling for Go projects."""

__version__ = "v0.0.1"