"""HTTP layer: the authorization pipeline and route modules."""
