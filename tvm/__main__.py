"""
Entry point for running tvm as a module.

Usage: python -m tvm [command] [options]
"""

from tvm.cli.parser import main

if __name__ == "__main__":
    main()
