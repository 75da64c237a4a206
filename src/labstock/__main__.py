"""Main entry point for the labstock package."""

from labstock.inventory.cli import main


if __name__ == "__main__":
    main()
