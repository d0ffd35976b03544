"""
Security module - Size bounds and defaults for the cipher engines.
"""

from cipherkit.security import constants

__all__ = ["constants"]
