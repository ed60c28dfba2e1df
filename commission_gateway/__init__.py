"""Commission calculation for card transactions"""

__version__ = "0.1.0"
