"""HTTP API: routes, schemas, middleware."""
