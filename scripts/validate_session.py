#!/usr/bin/env python3
"""Validate Kite Connect credentials and session

This script checks the configured credentials by:
1. Loading configuration from the environment (and .env if present)
2. Printing the browser login URL
3. Exchanging a request token for an access token (if one is given)
4. Fetching the user profile with the access token

Usage:
    python scripts/validate_session.py
    python scripts/validate_session.py --request-token <token>
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from loguru import logger
from rich.console import Console
from rich.table import Table

from kite_client import ApiError, KiteClient, KiteClientError, KiteConfig

console = Console()


def print_status(success: bool, message: str) -> None:
    """Print status message with color"""
    if success:
        console.print(f"[green]✓[/green] {message}")
    else:
        console.print(f"[red]✗[/red] {message}")


def print_info(message: str) -> None:
    """Print info message"""
    console.print(f"[blue]ℹ[/blue]  {message}")


def profile_table(profile: dict) -> Table:
    """Render the interesting profile fields"""
    table = Table(title="Kite Profile")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    for field in ("user_id", "user_name", "email", "broker", "exchanges", "products"):
        value = profile.get(field)
        if isinstance(value, list):
            value = ", ".join(value)
        table.add_row(field, str(value) if value is not None else "-")
    return table


async def validate_session(config: KiteConfig, request_token: str | None) -> bool:
    """Run the checks against the configured API

    Returns:
        True if every attempted check passed
    """
    async with KiteClient.from_config(config) as client:
        print_info(f"Login URL: {client.login_url()}")

        if request_token:
            if not config.api_secret:
                print_status(False, "KITE_API_SECRET is required to generate a session")
                return False
            try:
                await client.generate_session(request_token, config.api_secret)
                print_status(True, "Session generated")
            except KiteClientError as e:
                print_status(False, f"Session generation failed: {e}")
                return False

        if not client.access_token:
            print_info("No access token available; skipping profile check")
            return True

        try:
            response = await client.profile()
        except ApiError as e:
            print_status(False, f"Profile request rejected ({e.status_code}): {e}")
            if e.is_token_error:
                print_info("Access token is expired or invalid; log in again")
            return False
        except KiteClientError as e:
            print_status(False, f"Profile request failed: {e}")
            return False

        print_status(True, "Access token is valid")
        console.print(profile_table(response.get("data", {})))
        return True


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--request-token", help="request_token from the login redirect")
    parser.add_argument("--env-file", default=".env", help="dotenv file to load")
    args = parser.parse_args()

    logger.remove()
    logger.add(
        sys.stderr,
        level="WARNING",
        format="<level>{level}</level>: {message}",
    )

    env_file = Path(args.env_file)
    try:
        config = KiteConfig.from_env(env_file if env_file.exists() else None)
    except KiteClientError as e:
        print_status(False, str(e))
        sys.exit(1)

    try:
        success = asyncio.run(validate_session(config, args.request_token))
    except KeyboardInterrupt:
        console.print("\n[yellow]Validation interrupted by user[/yellow]")
        sys.exit(1)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
