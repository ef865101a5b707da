"""
Spot Rescheduler
Classified, CPU-accounted view of spot and on-demand nodes
"""

__version__ = "0.1.0"
