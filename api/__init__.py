"""ResusCert HTTP API routers."""
