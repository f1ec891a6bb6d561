"""
Command-Line Interface Layer.

Typer commands, Rich output helpers and the Rich status reporter.
"""
