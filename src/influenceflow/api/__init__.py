"""HTTP API: routers, request schemas and error mapping."""
