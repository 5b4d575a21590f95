"""Static defaults for new profiles."""
