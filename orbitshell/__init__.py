"""Orbit Shell: block-oriented shell front end"""

__version__ = '1.0.0'
