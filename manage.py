"""Management script for database setup and seeding"""

import click
from flask.cli import FlaskGroup

from homexpert import create_app
from homexpert.extensions import db
from homexpert.models import Role, User
from homexpert.services.permission_service import PermissionService
from homexpert.services.plan_service import PlanService

app = create_app()
cli = FlaskGroup(create_app=lambda: app)


@cli.command("init-db")
def init_db():
    """Create all tables"""
    with app.app_context():
        db.create_all()
        click.echo("✅ Database initialized successfully!")


@cli.command("seed-db")
@click.option("--with-plans/--without-plans", default=True, help="Also create the sample subscription plans.")
def seed_db(with_plans):
    """Seed permissions, system roles and sample plans"""
    with app.app_context():
        result = PermissionService.seed_all()
        click.echo(
            f"✅ {result['permissionsCreated']} permissions and {result['rolesCreated']} roles created."
        )
        if with_plans:
            created = PlanService.seed_sample_plans()
            click.echo(f"✅ {created} sample subscription plans created.")


@cli.command("create-admin")
@click.option("--email", prompt="Admin email")
@click.option("--name", prompt="Full name")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
def create_admin(email, name, password):
    """Create an admin user"""
    email = email.strip().lower()
    with app.app_context():
        if User.find_by_email(email):
            click.echo(f"❌ User with email '{email}' already exists!")
            raise SystemExit(1)

        PermissionService.seed_all()
        user = User(name=name.strip(), email=email, user_type="employee", role=Role.find_by_name("admin"))
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        click.echo(f"✅ Admin user created successfully: {email}")


if __name__ == "__main__":
    cli()
