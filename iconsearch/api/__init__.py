"""HTTP API for icon search and the vector store relay."""
