"""
Trader: consumes trade-intent messages from a message bus and submits them to
the Alpaca Trading API.
"""

__version__ = "0.2.0"
