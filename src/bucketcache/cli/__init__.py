"""Command line interface for the bucket cache."""
