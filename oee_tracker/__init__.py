"""
Shift OEE Tracker
Computes and aggregates Overall Equipment Effectiveness from shift production data
"""

__version__ = "0.1.0"
