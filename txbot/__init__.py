"""Fetching, caching, enrichment and filtering of chain data for a transactions bot."""

__version__ = "0.1.0"