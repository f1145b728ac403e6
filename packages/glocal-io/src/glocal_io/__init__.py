"""glocal-io: Ingest, export and storage adapters for glocal."""
