"""Request pipeline services: rate limiting, translation, upstream, normalization."""
