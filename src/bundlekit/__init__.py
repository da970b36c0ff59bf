"""Bundlekit - manifest validation for extension bundles."""

__version__ = "0.1.0"
