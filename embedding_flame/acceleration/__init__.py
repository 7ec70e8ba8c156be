"""Multi-process execution backends."""
