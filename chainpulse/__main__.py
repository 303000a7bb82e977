"""Allow ``python -m chainpulse``."""
from .cli import main

if __name__ == "__main__":
    main()
