"""Entry point for 'python -m memoizable' command."""

from memoizable.cli import main

if __name__ == "__main__":
    main()
