"""Allow running the tool with ``python -m apns_sender``."""

from .main import main

main()
