"""Column types, schema resolution and table definitions."""
