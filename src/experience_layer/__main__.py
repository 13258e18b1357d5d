"""Allow ``python -m experience_layer``."""

from experience_layer.cli import app

if __name__ == "__main__":
    app()
