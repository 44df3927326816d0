"""CLI tools for buddy matching administration."""

from uuid import UUID

import click
from sqlalchemy.exc import SQLAlchemyError

from buddymatch.core.config import settings
from buddymatch.core.security import create_session_token
from buddymatch.db.enums import Role
from buddymatch.db.models import BuddyProfile, User
from buddymatch.db.session import SessionLocal
from buddymatch.services import match_service


def _split(value: str | None) -> list[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


@click.group()
def cli():
    """Buddy matching CLI tools."""
    pass


@cli.command()
@click.option("--email", required=True, help="User email (unique)")
@click.option("--first-name", required=True)
@click.option("--last-name", required=True)
@click.option(
    "--role",
    required=True,
    type=click.Choice([r.value for r in Role], case_sensitive=False),
)
@click.option("--location", help="Buddy location (BUDDY only)")
@click.option("--unit", help="Buddy unit (BUDDY only)")
@click.option("--tech-stack", help="Comma-separated (BUDDY only)")
@click.option("--interests", help="Comma-separated (BUDDY only)")
@click.option("--max-buddies", type=int, default=None, help="Capacity (BUDDY only)")
def create_user(
    email: str,
    first_name: str,
    last_name: str,
    role: str,
    location: str | None,
    unit: str | None,
    tech_stack: str | None,
    interests: str | None,
    max_buddies: int | None,
):
    """
    Create a user, with a buddy profile when --role BUDDY and --location/--unit are given.

    Example:
        python -m buddymatch.cli create-user --email ann@example.com --first-name Ann \\
            --last-name Lee --role BUDDY --location Berlin --unit Platform --tech-stack Python,Go
    """
    role = role.upper()
    wants_profile = bool(location or unit)
    if wants_profile and role != Role.BUDDY.value:
        raise click.UsageError("Buddy profile options require --role BUDDY")
    if wants_profile and not (location and unit):
        raise click.UsageError("--location and --unit are both required for a buddy profile")

    capacity = max_buddies or settings.DEFAULT_MAX_BUDDIES
    if not 1 <= capacity <= settings.MAX_BUDDIES_LIMIT:
        raise click.UsageError(f"--max-buddies must be between 1 and {settings.MAX_BUDDIES_LIMIT}")

    db = SessionLocal()
    try:
        email = email.strip().lower()
        if db.query(User).filter(User.email == email).first():
            raise click.ClickException(f"User {email} already exists")

        user = User(email=email, first_name=first_name, last_name=last_name, role=role)
        db.add(user)
        db.flush()

        if wants_profile:
            db.add(
                BuddyProfile(
                    user_id=user.id,
                    location=location,
                    unit=unit,
                    tech_stack=_split(tech_stack),
                    interests=_split(interests),
                    max_buddies=capacity,
                )
            )
        db.commit()

        click.echo(f"✓ Created {role} user {email}")
        click.echo(f"  ID: {user.id}")
        if wants_profile:
            click.echo(f"✓ Buddy profile: {location} / {unit}, max_buddies={capacity}")
    except SQLAlchemyError as e:
        db.rollback()
        raise click.ClickException(f"Database error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User to issue a session token for")
def issue_token(email: str):
    """Print a session JWT for a user (send as 'Authorization: Bearer <token>')."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if not user:
            raise click.ClickException(f"User {email} not found")
        if not user.is_active:
            raise click.ClickException(f"User {email} is disabled")
        click.echo(create_session_token(user.id, user.role, user.token_version))
    finally:
        db.close()


@cli.command()
@click.option("--match-id", required=True, type=click.UUID, help="Accepted match to complete")
def complete_match(match_id: UUID):
    """Mark an accepted match as COMPLETED so participants can leave feedback."""
    db = SessionLocal()
    try:
        match = match_service.complete_match(db, match_id)
        click.echo(f"✓ Match {match.id} completed")
    except match_service.MatchServiceError as e:
        raise click.ClickException(e.message)
    finally:
        db.close()


if __name__ == "__main__":
    cli()
