"""Folio: hierarchical documents with versioned public snapshots."""
