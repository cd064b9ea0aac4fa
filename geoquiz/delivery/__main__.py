"""
Entry point for running GeoQuiz as a module.

Usage:
    python -m geoquiz.delivery play --learn
    python -m geoquiz.delivery progress
    python -m geoquiz.delivery --help
"""
from .quiz_cli import main

if __name__ == "__main__":
    main()
