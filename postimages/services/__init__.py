"""Services building on the content repository."""
