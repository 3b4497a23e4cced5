"""
Entry point for running fvmkit CLI as a module.

Usage: python -m fvmkit [command] [options]
"""

from fvmkit.cli.parser import main

if __name__ == "__main__":
    main()
