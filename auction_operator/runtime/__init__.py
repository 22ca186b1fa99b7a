"""
Operator runtime and command-line entry point.
"""

from .operator import OperatorRuntime

__all__ = [
    'OperatorRuntime',
]
