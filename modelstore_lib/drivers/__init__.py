"""Drivers binding records to key-value and columnar collaborators."""
