# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/changeroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (dev/test; use `flask db upgrade` in production).
# - python -m flask system seed --store-code S001 --store-name "High Street" --member-code TM01 --member-name "Sam Lee"
#   Idempotently create a store and a team member.
#
# Inspection:
# - python -m flask sessions list --store-id 1 --status exiting
#   List recent sessions with their counters.
#
# Maintenance:
# - python -m flask maintenance purge-baskets [--grace-seconds 300]
#   Delete transferred baskets past their display grace period.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Store, TeamMember
from .models.tenancy import MEMBER_ROLES
from .services import basket_service, session_service
from .time_utils import to_utc_z


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for the configured database."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('seed')
@click.option('--store-code', default='S001', help='Store code')
@click.option('--store-name', default='Main Store', help='Store display name')
@click.option('--member-code', default='TM01', help='Team member code')
@click.option('--member-name', default='Default Team Member', help='Team member full name')
@click.option('--role', type=click.Choice(MEMBER_ROLES), default='manager')
@with_appcontext
def seed(store_code, store_name, member_code, member_name, role):
    """Ensure a store and one team member exist (idempotent)."""
    store = db.session.query(Store).filter_by(code=store_code).first()
    if not store:
        store = Store(code=store_code, name=store_name, is_active=True)
        db.session.add(store)
        db.session.flush()
        click.echo(f"PASS Created store: {store.name} (ID: {store.id}, Code: {store.code})")
    else:
        click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")

    member = db.session.query(TeamMember).filter_by(store_id=store.id, member_code=member_code).first()
    if not member:
        member = TeamMember(
            store_id=store.id,
            member_code=member_code,
            full_name=member_name,
            role=role,
            is_active=True,
        )
        db.session.add(member)
        db.session.flush()
        click.echo(f"PASS Created team member: {member.full_name} (ID: {member.id}, Role: {member.role})")
    else:
        click.echo(f"PASS Using existing team member: {member.full_name} (ID: {member.id})")

    db.session.commit()


@click.group('sessions')
def sessions_group():
    """Session inspection commands."""


@sessions_group.command('list')
@click.option('--store-id', type=int, required=True)
@click.option('--status', 'statuses', multiple=True, help='Filter by status (repeatable)')
@click.option('--limit', type=int, default=20)
@with_appcontext
def list_sessions(store_id, statuses, limit):
    """List recent sessions for a store."""
    sessions = session_service.list_sessions(store_id, statuses=list(statuses) or None, limit=limit)
    if not sessions:
        click.echo("No sessions found.")
        return
    for s in sessions:
        click.echo(
            f"{s.id:>6}  tag={s.tag_barcode:<10} {s.status:<12} "
            f"in={s.total_items_in} purchased={s.items_purchased} "
            f"restocked={s.items_restocked} lost={s.items_lost}  entered={to_utc_z(s.entry_time)}"
        )


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('purge-baskets')
@click.option('--grace-seconds', type=int, default=None, help='Override BASKET_TRANSFER_GRACE_SECONDS')
@with_appcontext
def purge_baskets(grace_seconds):
    """Delete transferred baskets whose display grace period has passed."""
    if grace_seconds is None:
        grace_seconds = current_app.config["BASKET_TRANSFER_GRACE_SECONDS"]
    purged = basket_service.purge_transferred_baskets(grace_seconds)
    db.session.commit()
    click.echo(f"PASS Purged {purged} transferred basket(s)")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(maintenance_group)
