import asyncio
import json
from pathlib import Path
import subprocess
from typing import Annotated

from pydantic import validate_email
from rich import print
from sqlalchemy.exc import SQLAlchemyError
import typer

from taskdesk.core.config import settings

app = typer.Typer()


async def create_tables_task(drop: bool = False) -> None:
    """
    Create every table defined by the models.

    Args:
        drop: Drop existing tables first. Only allowed in development.

    Raises:
        typer.Exit: If the database cannot be reached.
    """
    from taskdesk.core.db import Base, async_engine, dispose_db
    import taskdesk.core.db.models  # noqa: F401

    try:
        async with async_engine.begin() as conn:
            if drop:
                print("[yellow]Dropping all tables[/yellow]")
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        print("[green]Tables created[/green]")
    except SQLAlchemyError as e:
        print(f"[red]Error creating tables:[/red] {str(e)}")
        raise typer.Exit(1)
    finally:
        await dispose_db()


async def create_user_task(
    email: str, password: str, first_name: str, last_name: str
) -> None:
    """
    Create a verified user, skipping the OTP step.

    Raises:
        typer.Exit: If the email is taken or the insert fails.
    """
    from taskdesk.core.db import AsyncSessionLocal, dispose_db
    from taskdesk.core.db.crud import user_db
    from taskdesk.core.exceptions.types import DatabaseException
    from taskdesk.core.utils import hash_password

    try:
        async with AsyncSessionLocal() as session:
            async with session.begin():
                if await user_db.get_by_email(session, email) is not None:
                    print(f"[red]User already exists:[/red] {email}")
                    raise typer.Exit(1)

                user = await user_db.create(
                    session=session,
                    data={
                        "email": email,
                        "password_hash": hash_password(password),
                        "first_name": first_name,
                        "last_name": last_name,
                        "verified": True,
                    },
                    commit_self=False,
                )
        print(f"[green]User created:[/green] {user.email} ({user.id})")
    except DatabaseException as e:
        print(f"[red]Error creating user:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await dispose_db()


def email_validator(email: str) -> str:
    _, email = validate_email(email)
    return email.lower()


@app.command()
def createtables(
    drop: Annotated[
        bool, typer.Option("--drop", help="Drop existing tables first")
    ] = False,
):
    """
    Create the database tables from the models.
    """
    if drop and settings.ENVIRONMENT == "production":
        print("[red]Refusing to drop tables in production[/red]")
        raise typer.Exit(1)
    asyncio.run(create_tables_task(drop))


@app.command()
def createuser(
    email: Annotated[
        str, typer.Option(prompt=True, prompt_required=False, callback=email_validator)
    ],
    password: Annotated[
        str, typer.Option(prompt=True, hide_input=True, confirmation_prompt=True)
    ],
    first_name: Annotated[str, typer.Option(prompt=True)],
    last_name: Annotated[str, typer.Option(prompt=True)],
):
    """
    Create an already verified user with the given email and password.
    """
    asyncio.run(create_user_task(email, password, first_name, last_name))


@app.command()
def runserver():
    try:
        server_command = (
            "uvicorn taskdesk.main:app --host 127.0.0.1 --port 8000 --reload"
            if settings.DEBUG
            else "uvicorn taskdesk.main:app --host 0.0.0.0 --port 8000"
        )
        print(f"Running FastAPI server: {server_command}")
        subprocess.run(server_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise


@app.command()
def generateopenapi():
    """
    Generates the OpenAPI schema for the FastAPI application and saves it to a JSON file.
    """
    from taskdesk.main import app

    openapi_path = Path("openapi.json")
    with openapi_path.open("w", encoding="utf-8") as f:
        json.dump(app.openapi(), f, ensure_ascii=False, indent=2)
    print(f"[green]OpenAPI schema generated at {openapi_path.name}[/green]")


@app.callback()
def main(ctx: typer.Context):
    print(f"Executing the command: {ctx.invoked_subcommand}")


if __name__ == "__main__":
    app()
