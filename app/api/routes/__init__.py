"""
API routes, mounted under /api/v1 by app.main.

- screenshots: AI analysis of uploaded screenshots
- matches: match record listing, manual entry, verification and deletion
- teams: team detail, stats reset and recalculation
- tournaments: tournaments, team registration and standings
- scoring: points preview and scoring rules
"""
