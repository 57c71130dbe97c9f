"""Module entrypoint for running Magicbook as ``python -m magicbook``."""

from __future__ import annotations

from magicbook.cli import main


if __name__ == "__main__":
    main()
