"""Main entry point when executing promptlens as a package.

This allows running the package using python -m promptlens.
"""

from promptlens.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
