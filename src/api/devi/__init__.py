"""Project Devi — search-grounded, citation-annotated answers to clinical questions."""

__version__ = "0.1.0"
