"""HTTP API for familycal."""
