# happy-tree/cli.py
"""
Launcher so the tool also runs from a source checkout:

    python cli.py run --domain-size 0x10000 --transform hex-square-sum --out tree.png
"""

from happy_tree.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
