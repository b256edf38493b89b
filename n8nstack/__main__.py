"""Allow ``python -m n8nstack``."""

from n8nstack.cli import cli

if __name__ == "__main__":
    cli()
