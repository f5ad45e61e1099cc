"""Factory ERP CLI tool (erpctl)."""

import typer

app = typer.Typer(name="erpctl", help="Factory ERP CLI")
db_app = typer.Typer(help="Database management commands")
users_app = typer.Typer(help="User management commands")
app.add_typer(db_app, name="db")
app.add_typer(users_app, name="users")


def _database():
    from factory_erp.core.config import settings
    from factory_erp.db.session import Database

    database = Database.from_settings(settings)
    database.connect()
    return database


@db_app.command("create")
def db_create():
    """Create the MySQL database if it doesn't exist."""
    import pymysql
    from sqlalchemy.engine import make_url
    from factory_erp.core.config import settings

    url = make_url(settings.DATABASE_URL)
    if not url.drivername.startswith("mysql"):
        typer.echo(f"Nothing to create for {url.drivername}")
        return

    conn = pymysql.connect(
        host=url.host or "localhost",
        port=url.port or 3306,
        user=url.username,
        password=url.password or "",
    )
    try:
        cursor = conn.cursor()
        cursor.execute(
            f"CREATE DATABASE IF NOT EXISTS `{url.database}` "
            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
        typer.echo(f"✅ Database '{url.database}' created (or already exists)")
    finally:
        conn.close()


@db_app.command("create-tables")
def db_create_tables():
    """Create every table from the ORM models."""
    database = _database()
    try:
        database.create_all()
        typer.echo("✅ Tables created")
    finally:
        database.disconnect()


@db_app.command("seed")
def db_seed():
    """Seed the permission catalog, default roles and the first administrator."""
    from factory_erp.db.seeds import run_seeds

    database = _database()
    try:
        with database.session() as db:
            admin = run_seeds(db)
            typer.echo(f"✅ Seed complete (administrator: {admin.email})")
    finally:
        database.disconnect()


@db_app.command("clear-purchases")
def db_clear_purchases(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete every purchase order and its items."""
    from factory_erp.services.purchase_order_service import purchase_order_service

    if not yes:
        typer.confirm("Delete ALL purchase orders?", abort=True)

    database = _database()
    try:
        with database.session() as db:
            count = purchase_order_service.clear_orders(db)
        typer.echo(f"✅ Deleted {count} purchase orders")
    finally:
        database.disconnect()


@users_app.command("reset-password")
def users_reset_password(
    email: str = typer.Argument(..., help="Account email"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
):
    """Set a new password for an account."""
    from factory_erp.core.exceptions import ERPError
    from factory_erp.core.messages import translate
    from factory_erp.models.user import User
    from factory_erp.services.user_service import user_service

    database = _database()
    try:
        with database.session() as db:
            user = db.query(User).filter(User.email == email.strip().lower()).first()
            if user is None:
                typer.echo(f"❌ {translate('user_not_found', 'en')}: {email}", err=True)
                raise typer.Exit(code=1)
            try:
                user_service.reset_password(db, user.id, password)
            except ERPError as exc:
                typer.echo(f"❌ {translate(exc.code, 'en', **exc.params)}", err=True)
                raise typer.Exit(code=1)
        typer.echo(f"✅ Password updated for {email}")
    finally:
        database.disconnect()


if __name__ == "__main__":
    app()
