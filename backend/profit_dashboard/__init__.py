"""
Profit Dashboard backend - Square inventory sync, cache and profit metrics
"""
__version__ = "1.0.0"
