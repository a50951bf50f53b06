#!/usr/bin/env python3
"""
Script to generate the secrets the demo app needs.
Prints lines ready to paste into an env file or a Cloud Run service.
"""

import argparse
import secrets

from oauth_signin.infrastructure.state_format import generate_state_key


def main():
    parser = argparse.ArgumentParser(
        description="Generate STATE_ENCRYPTION_KEY and SESSION_SECRET_KEY values."
    )
    parser.add_argument(
        "--state-only",
        action="store_true",
        help="Only print STATE_ENCRYPTION_KEY.",
    )
    args = parser.parse_args()

    print(f"STATE_ENCRYPTION_KEY={generate_state_key()}")
    if not args.state_only:
        print(f"SESSION_SECRET_KEY={secrets.token_urlsafe(32)}")


if __name__ == "__main__":
    main()
