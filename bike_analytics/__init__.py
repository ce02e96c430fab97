"""
Bike Sales Analytics

Read-only reporting over a bicycle-sales star schema.
"""

__version__ = "1.0.0"
