"""HTTP middleware for request logging."""
