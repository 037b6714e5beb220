"""
Views package for the tipping app.

Organized into:
- api.py: JSON endpoints for leaderboard, chips and match results
"""
