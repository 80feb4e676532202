"""
cli.py — Operator commands registered on the Flask CLI.

  flask --app "shopfront.app:create_app('development')" init-db
  flask ... create-user EMAIL [--admin]      (password is prompted)
  flask ... sweep-sessions

Commands follow the route layer rules: call the service, commit, report.
"""

from __future__ import annotations

import click
from flask import Flask

from shopfront.app.errors import AppError
from shopfront.app.extensions import db
from shopfront.app.services import credential_service, session_service


def register_commands(app: Flask) -> None:

    @app.cli.command("init-db")
    def init_db() -> None:
        """Create every table that does not exist yet (development only)."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("create-user")
    @click.argument("email")
    @click.option("--admin", is_flag=True, default=False, help="Grant administrator rights.")
    @click.password_option()
    def create_user(email: str, admin: bool, password: str) -> None:
        """Create a user with a salted PBKDF2 password hash."""
        try:
            user = credential_service.create_user(
                email=email,
                password=password,
                session=db.session,
                is_admin=admin,
            )
        except AppError as err:
            db.session.rollback()
            raise click.ClickException(err.message) from err
        db.session.commit()
        click.echo(f"Created user {user.email} (id={user.id}, admin={user.is_admin}).")

    @app.cli.command("sweep-sessions")
    def sweep_sessions() -> None:
        """Delete expired login sessions."""
        removed = session_service.sweep_expired_sessions(db.session)
        db.session.commit()
        click.echo(f"Removed {removed} expired session(s).")
