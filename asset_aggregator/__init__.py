"""Customer asset aggregation across bank, securities and insurance sources."""

__version__ = "0.1.0"
