"""Allow ``python -m snag``."""

from snag.cli import cli

if __name__ == "__main__":
    cli()
