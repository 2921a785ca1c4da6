#!/usr/bin/env python3
"""Provision the object storage described by the OSS_* environment.

Usage:
  .venv/bin/python scripts/provision_storage.py --dry-run
  .venv/bin/python scripts/provision_storage.py

Same as the ``ossbridge-provision`` console script.
"""

from ossbridge.cli.provision import main

if __name__ == "__main__":
    main()
