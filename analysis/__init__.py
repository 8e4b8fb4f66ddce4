"""
Analysis Engine Module

Derives portfolio and option statistics from resolved series:
- Daily returns, annualized return and volatility (252 trading days)
- Sharpe ratio (no risk-free rate), maximum drawdown
- Historical VaR, correlation matrix, beta
- Factor exposure, return histogram, option chain summary
"""

__version__ = "0.1.0"
