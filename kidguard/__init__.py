"""
KidGuard: school pickup authorization API.
"""

__version__ = "0.1.0"
