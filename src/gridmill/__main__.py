"""Allow running as ``python -m gridmill``."""

from gridmill.cli.app import app

if __name__ == "__main__":
    app()
