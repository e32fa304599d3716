"""CLI entry point for ``python -m authcore``."""

from authcore.cli import cli


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
