"""Post image sources and on-demand image variants."""
