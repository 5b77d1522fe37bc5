"""Roundup API: themed submission rounds, voting, scoring and standings."""
