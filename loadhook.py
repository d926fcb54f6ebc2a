#!/usr/bin/env python3
"""loadhook: cached compiler transforms for build-tool load hooks.

Thin entry point that delegates to src.loadhook.main.
"""

from src.loadhook.main import main

if __name__ == "__main__":
    main()
