# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/procurement/cli.py
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
# Organization management (MULTI-TENANT):
# - python -m flask orgs list
#   List all organizations.
# - python -m flask orgs create --name "Ban Nong School" --code "BNS"
#   Create a new organization (tenant).
#
# Cases:
# - python -m flask cases create --org-id 1 --title "Hire cleaner" --case-type HIRE --fiscal-year 2567 [--backdated --reason "..."]
#   Create a procurement case for local testing.
#
# Templates:
# - python -m flask templates list --org-id 1
#   List registry packs with their activation flag for an organization.
#
# Running numbers:
# - python -m flask numbers next --org-id 1 --fiscal-year 2567 --document-type HIRE
#   Allocate the next running number (audited like the API).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Organization, ProcurementCase, Document
from .models.cases import CASE_TYPES
from .services import running_number_service
from .services import template_service
from .services.running_number_service import PersistenceConflictError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA! Generated files under DATA_ROOT are kept.
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask orgs create' to add a tenant.")


# =============================================================================
# ORGANIZATION MANAGEMENT COMMANDS (MULTI-TENANT)
# =============================================================================

@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = db.session.query(Organization).all()

    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Cases':<8} {'Documents'}")
    click.echo("="*80)

    for org in orgs:
        case_count = db.session.query(ProcurementCase).filter_by(org_id=org.id).count()
        doc_count = db.session.query(Document).filter_by(org_id=org.id).count()
        active_str = "Yes" if org.is_active else "No"

        click.echo(f"{org.id:<5} {org.name:<30} {org.code or '-':<15} {active_str:<8} {case_count:<8} {doc_count}")

    click.echo("="*80 + "\n")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--code', required=True, help='Short code (unique)')
@with_appcontext
def create_org_cli(name, code):
    """Create a new organization (tenant)."""
    existing = db.session.query(Organization).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Organization with code '{code}' already exists")
        return

    org = Organization(name=name, code=code, is_active=True)
    db.session.add(org)
    db.session.commit()

    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")


# =============================================================================
# CASE COMMANDS
# =============================================================================

@click.group('cases')
def cases_group():
    """Procurement case bootstrap commands."""


@cases_group.command('create')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--title', required=True, help='Case title')
@click.option('--case-type', type=click.Choice(CASE_TYPES, case_sensitive=False), required=True)
@click.option('--subtype', default=None, help='Optional case subtype')
@click.option('--fiscal-year', type=int, required=True, help='Fiscal year (Buddhist era, e.g. 2567)')
@click.option('--backdated', is_flag=True, help='Mark the case as backdated')
@click.option('--reason', 'backdate_reason', default=None, help='Reason for backdating')
@with_appcontext
def create_case_cli(org_id, title, case_type, subtype, fiscal_year, backdated, backdate_reason):
    """Create a procurement case."""
    org = db.session.get(Organization, org_id)
    if not org:
        click.echo(f"FAIL Organization ID {org_id} not found")
        return

    if backdated and not backdate_reason:
        click.echo("FAIL --reason is required for backdated cases")
        return

    case = ProcurementCase(
        org_id=org_id,
        title=title,
        case_type=case_type.upper(),
        subtype=subtype,
        fiscal_year=fiscal_year,
        is_backdated=backdated,
        backdate_reason=backdate_reason,
    )
    db.session.add(case)
    db.session.commit()

    click.echo(f"PASS Created case: {case.title} (ID: {case.id}, Type: {case.case_type}, FY: {case.fiscal_year})")


# =============================================================================
# TEMPLATE COMMANDS
# =============================================================================

@click.group('templates')
def templates_group():
    """Template registry inspection commands."""


@templates_group.command('list')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def list_templates_cli(org_id):
    """List registry packs and whether they are active for the organization."""
    packs = template_service.list_packs(org_id)

    if not packs:
        click.echo("No template packs found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'Pack':<25} {'Case Type':<12} {'Mode':<10} {'Active':<8} {'Sheets'}")
    click.echo("="*90)

    for pack in packs:
        active_str = "Yes" if pack["isActive"] else "No"
        sheets = ", ".join(pack["outputSheets"])
        click.echo(f"{pack['id']:<25} {pack['caseType']:<12} {pack['pdfMode']:<10} {active_str:<8} {sheets}")

    click.echo("="*90 + "\n")


# =============================================================================
# RUNNING NUMBER COMMANDS
# =============================================================================

@click.group('numbers')
def numbers_group():
    """Running number commands."""


@numbers_group.command('next')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--fiscal-year', type=int, required=True, help='Fiscal year')
@click.option('--document-type', required=True, help='Document type (e.g. HIRE)')
@with_appcontext
def next_number_cli(org_id, fiscal_year, document_type):
    """Allocate the next running number for (org, fiscal year, document type)."""
    org = db.session.get(Organization, org_id)
    if not org:
        click.echo(f"FAIL Organization ID {org_id} not found")
        return

    try:
        number = running_number_service.next_running_number(org_id, fiscal_year, document_type.upper())
    except PersistenceConflictError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Allocated {number}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)  # Multi-tenant organization management
    app.cli.add_command(cases_group)
    app.cli.add_command(templates_group)
    app.cli.add_command(numbers_group)
