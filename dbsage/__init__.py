"""
dbsage - AI-assisted database analysis.

Fixed diagnostic routines per database kind, a conversational SQL agent and
an insight/chart augmenter for the produced reports.
"""

__version__ = "0.1.0"
