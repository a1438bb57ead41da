"""
ETH Trader MCP engine.
Balance, price discovery and state-override swap simulation on Uniswap V3.
"""

__version__ = "0.1.0"
