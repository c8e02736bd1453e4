from __future__ import annotations

from runner.main import run

if __name__ == "__main__":
    run()
