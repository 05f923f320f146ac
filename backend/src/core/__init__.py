"""Configuration, database setup and domain errors."""
