#!/usr/bin/env python3
"""
moodlist HTTP Server Runner
"""

from dotenv import load_dotenv

from moodlist.crosscutting.logging import setup_logging
from moodlist.interfaces.http import HTTPServer


def main():
    """Run the HTTP server."""
    load_dotenv()
    setup_logging(level='INFO')
    server = HTTPServer(
        host='localhost',
        port=3000,
        debug=True
    )
    server.run()


if __name__ == '__main__':
    main()
