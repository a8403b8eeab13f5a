"""
Shared utilities: settings, logging, timing and wiki markup helpers.
"""
