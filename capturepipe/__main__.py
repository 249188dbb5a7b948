"""Entry point for python -m capturepipe"""
from capturepipe.cli.commands import app

if __name__ == "__main__":
    app()
