"""
Barbera - appointment availability and booking core for a barber marketplace.
"""

__version__ = "0.1.0"
