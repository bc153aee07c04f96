"""Entry point for python -m parrot execution.

This module allows running Parrot as a module:
    python -m parrot import chat.zip
    python -m parrot reply Ana "bora?"
    python -m parrot --help
"""

from parrot.cli import run

if __name__ == "__main__":
    run()
