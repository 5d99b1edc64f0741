#!/usr/bin/env python3
"""
Generate secure secrets for Go Make Your Picks
Run this script to generate SECRET_KEY and JWT_SECRET_KEY values
"""

import secrets


def generate_secrets():
    """Generate secure random keys for the application"""
    print("🔐 Generating secure secrets for Go Make Your Picks...")
    print("=" * 50)

    # JWT signing and the Flask session use separate keys
    print(f"SECRET_KEY={secrets.token_urlsafe(32)}")
    print(f"JWT_SECRET_KEY={secrets.token_urlsafe(48)}")

    print("=" * 50)
    print("📝 Add these values to your .env file and keep them out of version control")


if __name__ == "__main__":
    generate_secrets()
