"""Configuration, database and cross-cutting helpers."""
