"""
Helpers for naming, formatting, companion files and release selection.
"""
