"""Entry point for ``python -m nethealth``."""

from nethealth.cli import main

if __name__ == "__main__":
    main()
