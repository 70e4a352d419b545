"""tenantkb — per-tenant knowledge ingestion pipeline."""
