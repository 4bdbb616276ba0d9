"""Allow ``python -m kubeplugins``."""

from kubeplugins.cli import main

main()
