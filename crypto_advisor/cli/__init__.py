"""
Command-line interface modules for Crypto Advisor.
"""

from .analyzer import CryptoAnalyzer
from .formatter import OutputFormatter

__all__ = ["CryptoAnalyzer", "OutputFormatter"]
