"""
Search orchestration.

Responsibilities:
- Validate the incoming craving query.
- Call the intent analyzer, then the recommender, once each.
- Reach both collaborators in-process or over HTTP with bounded timeouts.
- Report transport failures tagged with the dependency that failed.
"""
