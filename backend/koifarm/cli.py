# Overview: Flask CLI command groups for schema, workflow inspection and member maintenance.

# backend/koifarm/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to koifarm (PowerShell: $env:FLASK_APP="koifarm").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Sales workflow:
# - python -m flask workflow show
#   Print every selling status with its next steps, required and editable fields.
# - python -m flask workflow advance --sale-id 12 --status shipping
#   Move a sale through the workflow from the shell (same rules as the API).
#
# Members:
# - python -m flask members recalc [--member-id 7]
#   Recompute purchase count, total spend, last purchase and level from history.
# - python -m flask members refresh-activity
#   Re-tier members as hot/warm/cold active from their last purchase date.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import member_service, sales_service
from .services.sales_service import SaleError
from .services.workflow_service import WORKFLOW, WorkflowError, RequiredFieldsMissing


@click.group('system')
def system_group():
    """System bootstrap commands."""
    pass


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


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

    click.echo("PASS Database reset complete.")


@click.group('workflow')
def workflow_group():
    """Sales status workflow commands."""
    pass


@workflow_group.command('show')
@with_appcontext
def show_workflow():
    """Print the status workflow table."""
    for row in WORKFLOW.to_list():
        click.echo(f"{row['step_order']}  {row['status']:<13} {row['label']}")
        click.echo(f"     next:     {', '.join(row['next_statuses']) or '(terminal)'}")
        click.echo(f"     requires: {', '.join(row['required_fields']) or '-'}")
        click.echo(f"     editable: {', '.join(row['editable_fields']) or '-'}")


@workflow_group.command('advance')
@click.option('--sale-id', type=int, required=True, help='Sale ID')
@click.option('--status', 'status', required=True, help='Requested selling status')
@with_appcontext
def advance_sale(sale_id, status):
    """Change a sale's status from the shell."""
    try:
        sale = sales_service.change_status(sale_id, status)
    except RequiredFieldsMissing as e:
        click.echo(f"FAIL {e}")
        for error in e.errors:
            click.echo(f"     - {error}")
        raise SystemExit(1)
    except (WorkflowError, SaleError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Sale {sale.document_number} is now '{sale.selling_status}'")


@click.group('members')
def members_group():
    """Member CRM maintenance commands."""
    pass


@members_group.command('recalc')
@click.option('--member-id', type=int, default=None, help='Only this member')
@with_appcontext
def recalc_members(member_id):
    """Recompute derived purchase fields from purchase history."""
    if member_id is not None:
        member = member_service.recalculate_member_by_id(member_id)
        if member is None:
            click.echo(f"FAIL Member {member_id} not found")
            raise SystemExit(1)
        click.echo(
            f"PASS Member {member.code}: {member.purchase_count} purchase(s), "
            f"total {member.total_purchase_cents / 100:,.2f}, level {member.customer_level}"
        )
        return

    count = member_service.recalculate_all_members()
    click.echo(f"PASS Recalculated {count} member(s)")


@members_group.command('refresh-activity')
@with_appcontext
def refresh_activity():
    """Re-tier purchased members by how recently they bought."""
    changed = member_service.refresh_activity_statuses()
    click.echo(f"PASS Updated activity status for {changed} member(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(workflow_group)
    app.cli.add_command(members_group)
