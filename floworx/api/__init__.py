"""HTTP API: app factory, error envelope, middleware and routes"""
