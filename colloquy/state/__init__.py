"""Turn-scoped state: scope containers, property accessors and path resolution."""
