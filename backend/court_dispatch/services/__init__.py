"""
Services Layer

Dispatch logic for the live court board:
- Planning (rest/round gates, scoring, division balance, policies) is pure and
  works on snapshots of courts and matches
- Mutations (dispatch commits, desk overrides, match results) go through the
  compare-and-set Resource Store
- Nothing here depends on HTTP request/response objects
"""
