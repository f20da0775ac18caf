"""User sync service: mirrors identity-provider accounts into Postgres."""
