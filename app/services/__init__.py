"""
Business logic for the leaderboard.

- scoring: pure scoring rules (placement table, record points, aggregates, ranking)
- team_stats_service: recomputes a team's derived stats from its records
- match_record_service: record mutations, each followed by a team recompute
- screenshot_extraction_service: AI gateway client with retry policy
- screenshot_analysis_service: extraction plus persistence, batch uploads
- tournament_service: tournaments, teams and standings
"""
