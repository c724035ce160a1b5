"""
Menu recommendation engine.

Responsibilities:
- Read the menu corpus through a read-only repository.
- Filter candidates against a FoodIntent plus explicit constraints.
- Score candidates with a transparent linear model.
- Rank deterministically and truncate by inferred urgency.
"""
