"""HTTP server and CLI."""
