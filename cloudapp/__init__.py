"""cloudapp: a minimal HTTP server process with a graceful start/stop lifecycle."""
