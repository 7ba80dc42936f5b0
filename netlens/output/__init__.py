"""
Output formatters
"""

from .console import ConsoleOutput

__all__ = ['ConsoleOutput']
