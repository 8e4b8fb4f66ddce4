"""
Data Ingestion Module

Handles fetching and validating data from external sources:
- Alpaca, Alpha Vantage, Twelve Data and yfinance for equity prices
- CoinGecko and Alpaca for crypto prices
- EIA energy prices, FRED macro series, Polygon option chains
- Synthetic placeholders when no source responds
"""

__version__ = "0.1.0"
