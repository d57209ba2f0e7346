"""Orderflow command-line interface (``orderflow ...``)."""
