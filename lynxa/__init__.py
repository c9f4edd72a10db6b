"""Lynxa Pro backend: API key lifecycle, usage accounting and chat proxy"""

__version__ = "1.0.0"
