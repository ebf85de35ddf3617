"""bitcoin-navi: crypto and stock price monitoring backend."""

__version__ = "0.1.0"
