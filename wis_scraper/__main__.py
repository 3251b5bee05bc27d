"""
Allows running the scraper via:

    python -m wis_scraper
"""

from wis_scraper.cli import main

if __name__ == "__main__":
    main()
