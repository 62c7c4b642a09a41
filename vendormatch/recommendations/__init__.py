"""
Vendor recommendation engine.

Responsibilities:
- Select active vendors whose service categories match the requested one.
- Attach each vendor's most recent ratings.
- Rank candidates with the remote model, or with the deterministic
  weighted heuristic when the model is unavailable or fails.
- Return structured recommendations ready for API serialisation.
"""
