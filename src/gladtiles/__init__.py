"""gladtiles - Filterable deforestation-alert tile overlay engine."""

__version__ = "0.1.0"
