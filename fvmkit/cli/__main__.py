"""
Entry point for running fvmkit CLI as a module.

Usage: python -m fvmkit.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
