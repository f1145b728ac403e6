"""Deliverable exporters."""

from glocal_io.export.deliverable import JsonlAuditExporter, TxtDeliverableExporter

__all__ = ["JsonlAuditExporter", "TxtDeliverableExporter"]
