"""Command-line interface for agenthub."""

from agenthub.cli.main import app, main

__all__ = ['app', 'main']
