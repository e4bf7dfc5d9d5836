"""Command-line tools for tablewatch."""
