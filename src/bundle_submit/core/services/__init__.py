"""Core services: reference resolution, submission and reporting."""
