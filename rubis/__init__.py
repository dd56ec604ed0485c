"""Rubis - go-to-definition for Rails DSL calls."""

__version__ = "0.1.0"
