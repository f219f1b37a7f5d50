"""
Entry point for running the rustkit CLI as a module.

Usage: python -m rustkit [command] [options]
"""

from rustkit.cli.parser import main

if __name__ == "__main__":
    main()
