"""Allow ``python -m rostersync.cli`` execution."""

from rostersync.cli.sync import main

main()
