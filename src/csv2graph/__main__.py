"""
Run with: python -m csv2graph
"""
import sys

from csv2graph.main import main

if __name__ == "__main__":
    sys.exit(main())
