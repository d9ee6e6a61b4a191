"""
Entry point for the card sheet command line
"""
import os
import sys

# Make the package importable when run from a checkout
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

if __name__ == '__main__':
    from cardsheet.cli import main

    sys.exit(main())
