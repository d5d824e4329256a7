"""CLI tools for LLANOGAS administration."""

import asyncio
import json

import click

from llanogas.core.config import settings
from llanogas.db.enums import Role
from llanogas.db.session import SessionLocal


@click.group()
def cli():
    """LLANOGAS CLI tools."""
    pass


@cli.command()
@click.option("--email", required=True, help="User email address")
@click.option("--name", required=True, help="Display name")
@click.option(
    "--role",
    required=True,
    type=click.Choice([r.value for r in Role]),
    help="Role assigned to the user",
)
@click.option("--password", default=None, help="Initial password (omit to set it later)")
def create_user(email: str, name: str, role: str, password: str | None):
    """
    Create a user.

    Example:
        llanogas create-user --email "ana@llanogas.com" --name "Ana" --role GESTOR
    """
    from llanogas.core.exceptions import ConflictError, ValidationError
    from llanogas.services import user_service

    db = SessionLocal()
    try:
        user = user_service.create_user(
            db,
            {
                "email": email,
                "name": name,
                "role": role,
                "password": password,
                "require_password": False,
            },
        )
        click.echo(f"✓ Created user: {user.email}")
        click.echo(f"  ID: {user.id}")
        click.echo(f"  Role: {role}")
        if not password:
            click.echo("  No password set: the user cannot sign in yet")
    except (ConflictError, ValidationError) as e:
        click.echo(f"❌ {e.message}")
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email to revoke sessions for")
def revoke_sessions(email: str):
    """
    Revoke all sessions for a user by bumping their token_version.

    Example:
        llanogas revoke-sessions --email "ana@llanogas.com"
    """
    from llanogas.services import user_service

    db = SessionLocal()
    try:
        user = user_service.get_user_by_email(db, email)
        if not user:
            click.echo(f"❌ User not found: {email}")
            return

        old_version = user.token_version
        user_service.revoke_sessions(db, user)

        click.echo(f"✓ Revoked all sessions for {email}")
        click.echo(f"  Token version: {old_version} → {user.token_version}")

    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--name", required=True, help="Entity name")
@click.option("--acronym", required=True, help="Short code, e.g. CREG")
@click.option("--color", default="#2563eb", help="Display color")
@click.option("--domain", "domains", multiple=True, help="Sender domain (repeatable)")
@click.option("--response-days", default=15, help="Business days to respond (default: 15)")
def create_entity(name: str, acronym: str, color: str, domains: tuple[str, ...], response_days: int):
    """
    Register a regulatory entity and its sender domains.

    Example:
        llanogas create-entity --name "Superintendencia de Servicios Públicos" \\
            --acronym SSPD --domain superservicios.gov.co
    """
    from llanogas.core.exceptions import ValidationError
    from llanogas.services import entity_service

    db = SessionLocal()
    try:
        entity = entity_service.create_entity(
            db,
            {
                "name": name,
                "acronym": acronym,
                "color": color,
                "email_domains": list(domains),
                "response_days": response_days,
            },
        )
        click.echo(f"✓ Created entity: {entity.acronym}")
        click.echo(f"  ID: {entity.id}")
        click.echo(f"  Domains: {', '.join(entity.email_domains) or '-'}")
    except ValidationError as e:
        click.echo(f"❌ {e.message}")
    finally:
        db.close()


@cli.command()
def sync_gmail():
    """
    Run one Gmail sync tick and print the report.

    Example:
        llanogas sync-gmail
    """
    from llanogas.services.gmail_sync_service import GmailSyncConfig, GmailSyncService

    if not settings.gmail_configured:
        click.echo("❌ Gmail credentials are not configured")
        return

    service = GmailSyncService(GmailSyncConfig.from_settings())
    report = asyncio.run(service.sync_emails())
    click.echo(json.dumps(report.to_dict(), indent=2, default=str))
    if report.error:
        click.echo(f"❌ Sync failed: {report.error}")
    else:
        click.echo(f"✓ Sync finished: {report.created} new, {report.linked} linked")


@cli.command()
@click.option("--days", default=None, type=int, help="Horizon in days (default: DUE_SOON_DAYS)")
def notify_due_cases(days: int | None):
    """
    Notify responsible users and admins about cases close to their due date.

    Example:
        llanogas notify-due-cases --days 3
    """
    from llanogas.services import case_service

    db = SessionLocal()
    try:
        count = case_service.notify_due_cases(db, days if days is not None else settings.DUE_SOON_DAYS)
        click.echo(f"✓ Notified {count} cases")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
