"""
monochrome-dl: download albums, EPs and singles from Monochrome API instances.
"""

__version__ = "0.1.0"
