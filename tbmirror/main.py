"""Console entry point for ``tb-mirror``."""

from tbmirror.presentation.cli import app


def run() -> None:
    app()


if __name__ == "__main__":
    run()
