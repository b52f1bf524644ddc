"""Advisory record caches."""
