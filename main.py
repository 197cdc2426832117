#!/usr/bin/env python3
"""
Main entry point for the IMAP manager.

    python main.py run --input items.json [--param operation=move ...]
    python main.py check-config

See --help for available options.
"""
from imap_manager.cli import main


if __name__ == '__main__':
    main()
