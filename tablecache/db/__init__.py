"""PostgreSQL adapters: query source, store sink, bulk copy, connections."""
