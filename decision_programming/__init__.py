"""Influence-diagram compiler and strategy analysis."""

__version__ = "0.1.0"
