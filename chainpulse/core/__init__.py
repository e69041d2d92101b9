"""Settings, errors, middleware and the health engine."""
