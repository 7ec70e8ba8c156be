"""Configuration files and point-cloud storage."""
