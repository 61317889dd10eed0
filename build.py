#!/usr/bin/env python3
from mdpress.cli import main

if __name__ == "__main__":
    main()
