#!/usr/bin/env python3
"""
Bot Hosting Portal - Discord login + Pterodactyl server provisioning.
"""

import argparse
import logging
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

#
# NOTE: Keep portal imports lazy (inside functions) so `--help` does not need the web stack.
#


def check_config() -> int:
    """Print which settings are missing; return a process exit code."""
    from portal.auth.config import load_auth_config
    from portal.panel.config import load_panel_config

    missing = load_auth_config().missing_settings() + load_panel_config().missing_settings()
    if missing:
        print("Missing settings: " + ", ".join(missing))
        return 1
    print("Configuration OK")
    return 0


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Discord-login bot hosting portal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve the portal on port 8080
  python main.py --serve

  # Verify environment configuration before deploying
  python main.py --check-config
        """,
    )
    parser.add_argument("--serve", action="store_true", help="Run the portal HTTP server")
    parser.add_argument(
        "--check-config", action="store_true", help="Report missing Discord/session/panel settings and exit"
    )
    parser.add_argument("--host", default="0.0.0.0", help="Server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Server listen port (default: 8080)")

    args = parser.parse_args()

    try:
        if args.check_config:
            sys.exit(check_config())

        if args.serve:
            from portal.api.app import run as run_server

            run_server(host=args.host, port=args.port)
            return

        # No arguments provided
        parser.print_help()

    except Exception as e:
        print(f"Error starting portal: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
