"""Shared helpers for Bundlekit."""
