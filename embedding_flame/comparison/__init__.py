"""Point-cloud overlap and similarity metrics."""
