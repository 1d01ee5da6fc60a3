"""txload: ramping load tests for the transaction API"""

__version__ = "0.1.0"
