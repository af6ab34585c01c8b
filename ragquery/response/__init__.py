"""Post-processing of completed replies."""
