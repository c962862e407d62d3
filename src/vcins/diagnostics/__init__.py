"""Conservation diagnostics."""
