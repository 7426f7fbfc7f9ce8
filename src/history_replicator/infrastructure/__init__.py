"""Cross-cutting infrastructure: observability, backend registry, cursor persistence."""
