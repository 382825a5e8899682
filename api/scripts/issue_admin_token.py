#!/usr/bin/env python3
"""
Script to issue an access token for the admin dashboard.

Reads JWT_PRIVATE_KEY and JWT_PUBLIC_KEY from the environment:

    python scripts/issue_admin_token.py ana.souza --email ana@df.gov.br --minutes 480
"""

import argparse
import json
import os
import sys

# Add the parent directory to the path so we can import from api
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.enums import AdminPermission
from services.auth import AuthService


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Issue an admin access token")
    parser.add_argument("subject", help="Admin identifier stored in the 'sub' claim")
    parser.add_argument("--email", help="Admin email")
    parser.add_argument("--name", help="Admin display name")
    parser.add_argument("--minutes", type=int, default=60, help="Token lifetime in minutes")
    parser.add_argument(
        "--permission",
        action="append",
        dest="permissions",
        help="Granted permission (repeatable, defaults to manifestation:list)"
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    if not os.getenv("JWT_PRIVATE_KEY") or not os.getenv("JWT_PUBLIC_KEY"):
        print("JWT_PRIVATE_KEY and JWT_PUBLIC_KEY must be set", file=sys.stderr)
        return 1

    auth_service = AuthService()
    token = auth_service.issue_token(
        args.subject,
        args.permissions or [AdminPermission.MANIFESTATION_LIST.value],
        email=args.email,
        name=args.name,
        expires_minutes=args.minutes
    )
    print(json.dumps(token, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
