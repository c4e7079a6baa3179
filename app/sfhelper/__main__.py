"""Allow running sfhelper as ``python -m sfhelper``."""

from sfhelper.cli.main import app

if __name__ == "__main__":
    app()
