"""Entry point for running CodeLoop as a module."""

from codeloop.cli import app


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
