#!/usr/bin/python3
# -*- coding: utf-8 -*-
"""Top-level executable shim.

Allows `python subruster.py -d example.com` from a source checkout.
"""

import sys

from subruster.cli import main

if __name__ == "__main__":
    sys.exit(main())
