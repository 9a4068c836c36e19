"""
CLI interface for the HRMD receiver determination service.
"""
from .main import main

__all__ = ["main"]
