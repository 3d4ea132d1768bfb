"""Persistence layer: ORM tables, engines and sessions."""
