"""SyntaxMap: English tenses learning backend."""

__version__ = "2.0.0"
