"""Multi-tenant studio management service."""
