"""Main entry point for the answerme CLI."""

from answerme.cli.app import app


def main():
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    main()
