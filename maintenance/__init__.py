"""Operational scripts run against the production database and file store."""
