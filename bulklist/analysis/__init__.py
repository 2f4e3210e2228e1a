"""Pure analysis functions: grouping, shipping and validation."""
