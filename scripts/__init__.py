"""
Scripts Package.

This package contains operational scripts for the bootstrap.

Scripts:
- bootstrap_db: First-run initialization of the data directory
"""

# Scripts are meant to be run directly, not imported
