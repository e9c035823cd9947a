"""
Coin Scout: multi-factor crypto scoring and constrained starter allocations.
"""

__version__ = "0.1.0"
