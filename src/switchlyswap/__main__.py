"""Allow ``python -m switchlyswap``."""

from switchlyswap.cli import run

run()
