"""Main entry point when executing wsmux as a package.

This allows running the package using python -m wsmux.
"""

from wsmux.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
