"""Command line interface for inspecting and maintaining the cache."""
