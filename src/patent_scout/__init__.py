"""Patent Scout - EPO OPS bibliographic search and enrichment client."""

__version__ = "0.1.0"
