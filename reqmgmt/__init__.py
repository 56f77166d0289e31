"""Data layer for the product requirements management service."""
