"""Grounded retrieval-augmented query service.

This package handles:
- Loading the pre-embedded corpus and scoring passages against a query
- Selecting and assembling grounding context
- Relaying grounded conversations to a completion provider
- Extracting follow-up suggestions from completed replies
"""

__version__ = "1.0.0"
