"""HTTP surface (FastAPI) over the intent pipeline and the token registry."""
