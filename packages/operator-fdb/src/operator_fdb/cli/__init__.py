"""Command-line interface for operator-fdb."""
