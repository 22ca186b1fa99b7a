"""
Auction operator: competes in pool rent auctions and manages swap fees.
"""

__version__ = "0.1.0"
