"""
NetLens - Network Diagnostics Engine

Entry point for running as a module:
    python -m netlens <command>
"""

from .cli import main

if __name__ == '__main__':
    main()
