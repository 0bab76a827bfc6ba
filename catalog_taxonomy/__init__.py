"""Taxonomy classification and reconciliation engine for the fashion catalog."""

__version__ = "0.1.0"
