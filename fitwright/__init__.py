"""
fitwright: table-driven browser commands on top of Playwright.
"""

__version__ = "0.1.0"
