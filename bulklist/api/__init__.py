"""HTTP API for bulk listing batches."""
