# Overview: Flask CLI command groups for bootstrap, tenant administration and ledger checks.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenant management (MULTI-TENANT):
# - python -m flask tenants list
#   List all tenants with plan, user and material counts.
# - python -m flask tenants create --name "Acme Corp" --plan FREE --admin-email ops@acme.test --admin-name "Ops Lead"
#   Create a tenant and its first ADMIN user.
# - python -m flask tenants set-plan --tenant-id <id> --plan PRO
#   Upgrade or downgrade a tenant.
#
# Users:
# - python -m flask users create --tenant-id <id> --email clerk@acme.test --name "Stock Clerk" --role USER
#
# Ledger:
# - python -m flask ledger verify [--tenant-id <id>]
#   Check current_stock against the transaction history of every material.

import sys

import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import Material, Tenant, User
from .models.tenancy import ALL_PLANS, ALL_ROLES, PLAN_FREE, ROLE_USER
from .services import reporting_service, tenant_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask tenants create' to add a tenant.")


# =============================================================================
# TENANT MANAGEMENT COMMANDS
# =============================================================================

@click.group('tenants')
def tenants_group():
    """Tenant management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants():
    """List all tenants."""
    tenants = tenant_service.list_tenants()

    if not tenants:
        click.echo("No tenants found.")
        return

    click.echo("\n" + "="*96)
    click.echo(f"{'ID':<38} {'Name':<30} {'Plan':<6} {'Users':<7} {'Materials'}")
    click.echo("="*96)

    for tenant in tenants:
        user_count = db.session.query(User).filter_by(tenant_id=tenant.id).count()
        material_count = (
            db.session.query(Material)
            .filter(Material.tenant_id == tenant.id, Material.deleted_at.is_(None))
            .count()
        )
        click.echo(f"{tenant.id:<38} {tenant.name:<30} {tenant.plan:<6} {user_count:<7} {material_count}")

    click.echo("="*96 + "\n")


@tenants_group.command('create')
@click.option('--name', required=True, help='Tenant name (globally unique)')
@click.option('--plan', type=click.Choice(ALL_PLANS), default=PLAN_FREE, show_default=True, help='Plan')
@click.option('--admin-email', required=True, help='Email of the initial ADMIN user')
@click.option('--admin-name', required=True, help='Name of the initial ADMIN user')
@with_appcontext
def create_tenant_cli(name, plan, admin_email, admin_name):
    """Create a tenant and its initial ADMIN user."""
    try:
        tenant, admin = tenant_service.create_tenant(
            name=name,
            plan=plan,
            admin_email=admin_email,
            admin_name=admin_name,
        )
    except ServiceError as e:
        click.echo(f"FAIL {e.message}")
        sys.exit(1)

    click.echo(f"PASS Created tenant: {tenant.name} (ID: {tenant.id}, Plan: {tenant.plan})")
    click.echo(f"PASS Admin user: {admin.email} (ID: {admin.id})")


@tenants_group.command('set-plan')
@click.option('--tenant-id', required=True, help='Tenant ID')
@click.option('--plan', type=click.Choice(ALL_PLANS), required=True, help='New plan')
@with_appcontext
def set_plan_cli(tenant_id, plan):
    """Change a tenant's plan."""
    try:
        tenant = tenant_service.set_tenant_plan(tenant_id=tenant_id, plan=plan)
    except ServiceError as e:
        click.echo(f"FAIL {e.message}")
        sys.exit(1)

    click.echo(f"PASS Tenant {tenant.name} is now on the {tenant.plan} plan")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--tenant-id', required=True, help='Tenant ID')
@click.option('--email', prompt=True, help='Email address (globally unique)')
@click.option('--name', prompt=True, help='Display name')
@click.option('--role', type=click.Choice(ALL_ROLES), default=ROLE_USER, show_default=True, help='Role')
@with_appcontext
def create_user_cli(tenant_id, email, name, role):
    """Add a user to a tenant. Roles are fixed after creation."""
    try:
        user = tenant_service.create_user(tenant_id=tenant_id, email=email, name=name, role=role)
    except ServiceError as e:
        click.echo(f"FAIL {e.message}")
        sys.exit(1)

    click.echo(f"PASS Created {user.role} user {user.email} (ID: {user.id})")


# =============================================================================
# LEDGER COMMANDS
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Ledger inspection commands."""


@ledger_group.command('verify')
@click.option('--tenant-id', default=None, help='Limit the check to one tenant')
@with_appcontext
def verify_ledger_cli(tenant_id):
    """Check every material's current_stock against its transaction history."""
    if tenant_id is not None and db.session.get(Tenant, tenant_id) is None:
        click.echo(f"FAIL Tenant {tenant_id} not found")
        sys.exit(1)

    mismatches = reporting_service.verify_ledger(tenant_id=tenant_id)
    if not mismatches:
        click.echo("PASS Ledger consistent: every current_stock matches its history")
        return

    for m in mismatches:
        click.echo(
            f"FAIL material {m['material_id']} ({m['name']}) tenant {m['tenant_id']}: "
            f"current_stock={m['current_stock']} ledger={m['ledger_stock']}"
        )
    sys.exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
