"""
Homeserver transports.
"""

from .base import MatrixTransport
from .http import HttpTransport

__all__ = [
    "MatrixTransport",
    "HttpTransport",
]
