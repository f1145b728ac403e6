"""glocal-schemas: Pydantic schemas for the glocal localization workflow."""
