"""Accreda: EIT competency tracking and CSAW export."""

__version__ = "0.1.0"
