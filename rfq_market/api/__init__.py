"""HTTP surface: Flask blueprint + route modules."""
