"""Guard runners for SDK repository standards.

Each guard exposes a `run(roots: list[str]) -> int` function that returns
non-zero on violations.
"""
