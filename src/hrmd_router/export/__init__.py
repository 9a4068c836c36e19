"""
Export module for the routing decision message.
"""

from .receiver_encoder import encode_receivers

__all__ = ["encode_receivers"]
