"""Cross-cutting concerns: error catalog, exceptions and logging setup."""
