"""Infrastructure: database engines and repository implementations."""
