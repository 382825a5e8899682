#!/usr/bin/env python3
"""
Script to generate the RSA key pair used to sign admin tokens.
This ensures consistent keys across container restarts.
"""

import os
import sys

# Add the parent directory to the path so we can import from api
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.auth import generate_key_pair


def as_env_value(pem: str) -> str:
    """PEM text on one line, as expected in .env files."""
    return pem.strip().replace("\n", "\\n")


if __name__ == "__main__":
    private_key, public_key = generate_key_pair()

    print("=== JWT PRIVATE KEY ===")
    print(private_key)
    print("\n=== JWT PUBLIC KEY ===")
    print(public_key)

    print("\n=== Environment Variables ===")
    print(f'JWT_PRIVATE_KEY="{as_env_value(private_key)}"')
    print(f'JWT_PUBLIC_KEY="{as_env_value(public_key)}"')
