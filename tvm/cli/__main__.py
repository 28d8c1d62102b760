"""
Entry point for running tvm CLI as a module.

Usage: python -m tvm.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
