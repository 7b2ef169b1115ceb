"""CLI tools for BookBuddy.

- ``python -m bookbuddy.cli ingest`` -- upload a book and ingest it inline
- ``python -m bookbuddy.cli ask`` -- answer a question with citations
- ``python -m bookbuddy.cli library`` -- list uploaded books

All commands use argparse and build the same component graph as the web
application (see :func:`bookbuddy.main.build_components`).
"""
