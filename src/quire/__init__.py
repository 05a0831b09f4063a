"""quire: retrieval-augmented generation engine for multi-source notebooks."""

__version__ = "0.1.0"
