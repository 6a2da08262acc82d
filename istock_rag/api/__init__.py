"""HTTP API: CORS gate, request normalization and routes."""
