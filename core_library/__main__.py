"""Entry point for ``python -m core_library``"""

from .cli import main


if __name__ == "__main__":
    main()
