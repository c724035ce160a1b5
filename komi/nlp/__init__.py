"""
Intent analysis layer.

Responsibilities:
- Turn free-text food cravings into a normalized FoodIntent.
- Fall back to deterministic keyword matching when the LLM is unavailable.
- Cache analyses for an hour, keyed by a request fingerprint.
"""
