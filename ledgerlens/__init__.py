"""
LedgerLens - normalization of extracted accounting reports.
"""

__version__ = "1.0.0"
