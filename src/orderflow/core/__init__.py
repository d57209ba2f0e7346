"""Core primitives shared by every orderflow layer."""
