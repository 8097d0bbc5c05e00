"""
Solar thermal loop energy simulation: collector, pump and storage tank
stepped through discrete periods.
"""

__version__ = '1.0.0'
