#!/usr/bin/env python3
"""
Health check script for the lecture notes service.
Verifies configuration and that the external services are reachable.
"""

import os
import sys

import requests
from rich.console import Console
from rich.table import Table

console = Console()


def check_vault(encryption_key: str) -> dict:
    """Check the encryption key builds a working vault."""
    from lecture_notes.generation import SecretVault
    from lecture_notes.generation.errors import DecryptionFailed, VaultConfigurationError

    try:
        vault = SecretVault(encryption_key)
        if vault.decrypt(vault.encrypt("check")) != "check":
            return {"status": "✗ Broken", "healthy": False, "details": "Round trip mismatch"}
        return {"status": "✓ Ready", "healthy": True, "details": "Encrypt/decrypt round trip ok"}
    except VaultConfigurationError as e:
        return {"status": "✗ Not Set", "healthy": False, "details": str(e)}
    except DecryptionFailed as e:
        return {"status": "✗ Broken", "healthy": False, "details": str(e)}


def check_database(database_url: str) -> dict:
    """Check the database accepts connections."""
    from sqlalchemy import text
    from lecture_notes.api.dependencies import create_db_engine

    try:
        with create_db_engine(database_url).connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "✓ Connected", "healthy": True, "details": database_url.split("@")[-1]}
    except Exception as e:
        return {"status": "✗ Error", "healthy": False, "details": str(e)[:100]}


def check_identity_provider(base_url: str, api_key: str) -> dict:
    """Check the identity provider answers its health endpoint."""
    headers = {"apikey": api_key} if api_key else {}
    try:
        response = requests.get(f"{base_url.rstrip('/')}/auth/v1/health", headers=headers, timeout=10)
        if response.status_code == 200:
            return {"status": "✓ Connected", "healthy": True, "details": base_url}
        return {
            "status": f"✗ HTTP {response.status_code}",
            "healthy": False,
            "details": response.text[:100]
        }
    except requests.exceptions.Timeout:
        return {"status": "✗ Timeout", "healthy": False, "details": "Request timed out after 10s"}
    except requests.exceptions.ConnectionError:
        return {"status": "✗ Connection Error", "healthy": False, "details": f"Cannot connect to {base_url}"}


def check_gemini_api(api_key: str) -> dict:
    """Check a Gemini API key with the same minimal prompt the API uses."""
    from lecture_notes.config import get_config
    from lecture_notes.generation import GeminiClient

    config = get_config()
    client = GeminiClient(base_url=config.gemini_base_url, model=config.gemini_model)
    if client.validate_key(api_key):
        return {"status": "✓ Valid", "healthy": True, "details": f"Model {config.gemini_model}"}
    return {"status": "✗ Invalid API Key", "healthy": False, "details": "Key rejected or API unreachable"}


def _add_result(table: Table, name: str, result: dict) -> None:
    color = "green" if result["healthy"] else "red"
    table.add_row(f"  {name}", f"[{color}]{result['status']}[/{color}]", result["details"])


def main():
    """Main health check function."""
    console.print("\n[bold cyan]Lecture Notes - Service Health Check[/bold cyan]\n")

    # Load environment variables
    from dotenv import load_dotenv
    load_dotenv()

    from lecture_notes.config import get_config
    config = get_config()

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Service", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details", style="dim")

    table.add_row("Local", "", "", style="bold")
    vault_status = check_vault(config.encryption_key or "")
    _add_result(table, "Secret vault", vault_status)
    db_status = check_database(config.database_url)
    _add_result(table, "Database", db_status)

    table.add_row("", "", "")
    table.add_row("External APIs", "", "", style="bold")

    identity_status = {"healthy": False}
    if config.identity_url:
        identity_status = check_identity_provider(config.identity_url, config.identity_api_key or "")
        _add_result(table, "Identity provider", identity_status)
    else:
        table.add_row("  Identity provider", "[red]✗ Not Set[/red]", "IDENTITY_URL not configured")

    # Optional: a developer key to confirm Gemini is reachable
    gemini_key = os.getenv("GEMINI_API_KEY", "")
    if gemini_key:
        _add_result(table, "Gemini API", check_gemini_api(gemini_key))
    else:
        table.add_row("  Gemini API", "[yellow]⚠ Skipped[/yellow]", "Set GEMINI_API_KEY to test a key")

    console.print(table)

    # Summary
    console.print("\n[bold]Summary:[/bold]")

    if vault_status["healthy"] and db_status["healthy"] and identity_status["healthy"]:
        console.print("[green]✓ Core services are configured and running[/green]")
        return 0

    console.print("[red]✗ Some services need attention[/red]")
    console.print("\nPlease:")
    if not vault_status["healthy"]:
        console.print("  1. Set ENCRYPTION_KEY in .env file (required)")
    if not db_status["healthy"]:
        console.print("  2. Check DATABASE_URL in .env file")
    if not identity_status["healthy"]:
        console.print("  3. Set IDENTITY_URL and IDENTITY_API_KEY in .env file")
    return 1


if __name__ == "__main__":
    sys.exit(main())
