"""Command line interface for applyfill."""
