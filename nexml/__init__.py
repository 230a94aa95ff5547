"""
NexML Marketplace - Model Registry Engine

A registry for machine-learning models that tracks ownership, sale and
rental listings, payment settlement, rental participation and peer ratings.
"""

__version__ = "1.0.0"

from nexml.config import get_settings

__all__ = ["get_settings", "__version__"]
