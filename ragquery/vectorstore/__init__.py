"""Vector store over the immutable pre-embedded corpus."""
