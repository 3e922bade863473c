"""HTTP API for the time reference endpoint."""
