#!/usr/bin/env python3
"""
Civil Services Daily
Start script

Usage:
    python run.py [--port PORT] [--host HOST] [--debug] [--load-questions]

Examples:
    python run.py
    python run.py --port 8080
    python run.py --host 0.0.0.0 --port 3001 --debug --load-questions
"""

import argparse
import sys

from csdaily.app import create_app, load_initial_questions
from csdaily.core.config import Config


def main():
    """Start the API server"""
    parser = argparse.ArgumentParser(description='Civil Services Daily API')
    parser.add_argument('--host', default=Config.HOST, help=f'Host address (default: {Config.HOST})')
    parser.add_argument('--port', type=int, default=Config.PORT, help=f'Port (default: {Config.PORT})')
    parser.add_argument('--debug', action='store_true', help='Run in debug mode')
    parser.add_argument('--load-questions', action='store_true',
                        help=f'Import {Config.QUESTIONS_FOLDER}/*.json when the library is empty')

    args = parser.parse_args()

    app = create_app()
    if args.load_questions:
        load_initial_questions(app)

    app.logger.info(f"Starting API on http://{args.host}:{args.port}")
    app.logger.info(f"Database: {Config.DATABASE_TYPE.upper()}")

    try:
        app.run(host=args.host, port=args.port, debug=args.debug, use_reloader=args.debug)
    except KeyboardInterrupt:
        app.logger.info("Server stopped")
        sys.exit(0)


if __name__ == '__main__':
    main()
