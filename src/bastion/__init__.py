"""Diagnostic aggregation and protection-policy engine."""

__version__ = "0.1.0"
