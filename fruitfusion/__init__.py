# fruitfusion/__init__.py
"""Fruit Fusion storefront data layer."""

__version__ = "0.1.0"
