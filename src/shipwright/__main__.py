"""Allow ``python -m shipwright``."""

from shipwright.cli.app import app

if __name__ == "__main__":
    app()
