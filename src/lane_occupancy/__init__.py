"""
Lane occupancy mapping from single-channel camera frames.
"""

__version__ = '0.1.0'
