"""Entry point: python -m src.main <command> [options]."""

import sys


def main():
    from src.interfaces.cli import main as run_cli_main

    sys.exit(run_cli_main(sys.argv[1:]))


if __name__ == "__main__":
    main()
