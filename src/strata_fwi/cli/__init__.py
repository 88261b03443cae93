"""Command-line interface for strata-fwi."""

from strata_fwi.cli.compute import main

__all__ = ["main"]
