"""User management CLI commands."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import typer
from sqlalchemy.ext.asyncio import AsyncSession

from farm_manager.core.errors import DuplicateEmailError, DuplicateUsernameError
from farm_manager.models.user import UserRole

user_app = typer.Typer()


@asynccontextmanager
async def _session_scope() -> AsyncGenerator[AsyncSession]:
    """Open the credential store for a single command and close it afterwards."""
    from farm_manager.core.config import get_settings
    from farm_manager.core.database import dispose_engine, get_session_factory, init_engine

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)
    try:
        factory = get_session_factory()
        async with factory() as session:
            yield session
    finally:
        await dispose_engine()


def _parse_role(role: str) -> UserRole:
    try:
        return UserRole(role.lower())
    except ValueError:
        allowed = "/".join(r.value for r in UserRole)
        typer.echo(f"Error: invalid role '{role}' (expected {allowed})", err=True)
        raise typer.Exit(code=1) from None


@user_app.command("create")
def create_user(
    username: str = typer.Option(..., prompt=True, help="Username"),
    email: str = typer.Option(..., prompt=True, help="Email address"),
    first_name: str = typer.Option(..., "--first-name", prompt=True, help="First name"),
    last_name: str = typer.Option(..., "--last-name", prompt=True, help="Last name"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True, help="Password"),
    role: str = typer.Option("worker", prompt=True, help="User role (admin/manager/worker/viewer)"),
    if_not_exists: bool = typer.Option(
        False,
        "--if-not-exists",
        help="Exit successfully if user already exists (idempotent mode)",
    ),
) -> None:
    """Create a new user interactively."""
    asyncio.run(
        _create_user(
            username,
            email,
            first_name,
            last_name,
            password,
            _parse_role(role),
            if_not_exists=if_not_exists,
        )
    )


async def _create_user(
    username: str,
    email: str,
    first_name: str,
    last_name: str,
    password: str,
    role: UserRole,
    *,
    if_not_exists: bool = False,
) -> None:
    """Async implementation of user creation."""
    from farm_manager.services.user_service import create_user

    async with _session_scope() as session:
        try:
            user = await create_user(
                session,
                email=email,
                username=username,
                password=password,
                first_name=first_name,
                last_name=last_name,
                role=role,
            )
        except (DuplicateEmailError, DuplicateUsernameError) as e:
            if if_not_exists:
                typer.echo(f"User '{username}' already exists, skipping (--if-not-exists)")
                return
            typer.echo(f"Error: {e.detail}", err=True)
            raise typer.Exit(code=1) from e
        typer.echo(f"User '{user.username}' created with role '{user.role}'")


@user_app.command("list")
def list_users(
    page: int = typer.Option(1, "--page", min=1, help="Page number"),
    page_size: int = typer.Option(50, "--page-size", min=1, max=500, help="Users per page"),
) -> None:
    """List users that have not been deleted."""
    asyncio.run(_list_users(page, page_size))


async def _list_users(page: int, page_size: int) -> None:
    """Async implementation of user listing."""
    from farm_manager.services.user_service import list_users

    async with _session_scope() as session:
        users, total = await list_users(session, page, page_size)
        typer.echo(f"{'Username':<20} {'Email':<30} {'Role':<10} {'Active':<8}")
        typer.echo("-" * 68)
        for user in users:
            typer.echo(f"{user.username:<20} {user.email:<30} {user.role:<10} {user.is_active!s:<8}")
        typer.echo(f"\nTotal: {total}")


@user_app.command("set-role")
def set_role(
    login: str = typer.Argument(..., help="Username or email"),
    role: str = typer.Argument(..., help="New role (admin/manager/worker/viewer)"),
) -> None:
    """Change a user's role."""
    asyncio.run(_update(login, {"role": _parse_role(role)}))


@user_app.command("deactivate")
def deactivate(
    login: str = typer.Argument(..., help="Username or email"),
) -> None:
    """Deactivate a user; they can no longer log in or refresh tokens."""
    asyncio.run(_update(login, {"is_active": False}))


async def _update(login: str, updates: dict) -> None:
    from farm_manager.services.user_service import get_user_by_login, update_user

    async with _session_scope() as session:
        user = await get_user_by_login(session, login)
        if user is None:
            typer.echo(f"Error: user '{login}' not found", err=True)
            raise typer.Exit(code=1)
        user = await update_user(session, user, updates)
        typer.echo(f"User '{user.username}': role={user.role} active={user.is_active}")


@user_app.command("reset-token")
def reset_token(
    email: str = typer.Argument(..., help="Account email"),
) -> None:
    """Issue a password reset token and print it (there is no mail delivery)."""
    asyncio.run(_reset_token(email))


async def _reset_token(email: str) -> None:
    from farm_manager.core.config import get_settings
    from farm_manager.services.auth_service import request_password_reset

    async with _session_scope() as session:
        token = await request_password_reset(session, email, get_settings())
    if token is None:
        typer.echo(f"Error: no active user with email '{email}'", err=True)
        raise typer.Exit(code=1)
    typer.echo(token)
