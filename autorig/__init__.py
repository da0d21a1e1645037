"""Building blocks for automatic rigging: geometry, graphs, embedding, skin weights and motion filtering."""

__version__ = "0.1.0"

__all__ = [
    "geometry",
    "graph",
    "indexer",
    "embedding",
    "discretization",
    "attachment",
    "filter",
    "cli",
]