"""
Crypto Advisor Test Suite

This package contains all tests for Crypto Advisor, organized by category:
- unit: Unit tests for individual components
- integration: Integration tests for component interactions
"""

__version__ = "1.0.0"
