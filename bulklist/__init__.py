"""bulklist - turn photos of many items into listings in one batch."""

__version__ = "0.1.0"
