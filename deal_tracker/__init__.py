"""
Deal tracker: buyer pipeline stage model and funnel analytics.
"""

__version__ = "0.1.0"
