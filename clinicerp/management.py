"""
Management commands for local setup and maintenance
"""
import json
from datetime import timedelta

import click
from flask import current_app
from flask.cli import with_appcontext

from .authz import issue_member_token
from .extensions import db
from .models import Clinic, Product, Supplier, SupplierManager
from .services.product_service import ProductService
from .utils.cache_manager import all_cache_stats
from .utils.timezone_utils import TimezoneUtils

DEMO_SUPPLIER_BUSINESS_NUMBER = '123-45-67890'

DEMO_PRODUCTS = (
    {
        'name': '히알루론산 필러 1ml',
        'brand': 'DermaFill',
        'barcode': '8800000000011',
        'category': '필러',
        'unit': 'ea',
        'min_stock': 5,
        'purchase_price': 45000,
        'sale_price': 90000,
        'storage': '냉장고 A',
        'expiry_days': 20,
        'qty': 12,
        'return_policy': {'is_returnable': True, 'refund_amount': 5000},
    },
    {
        'name': '보툴리눔 톡신 100U',
        'brand': 'NeuroTox',
        'barcode': '8800000000028',
        'category': '톡신',
        'unit': 'vial',
        'min_stock': 10,
        'purchase_price': 120000,
        'sale_price': 250000,
        'storage': '냉장고 B',
        'expiry_days': 180,
        'qty': 8,
        'usage_capacity': 100,
        'capacity_per_product': 4,
        'return_policy': {'is_returnable': True, 'refund_amount': 3000},
    },
    {
        'name': '멸균 거즈 10x10',
        'brand': 'MediCare',
        'barcode': '8800000000035',
        'category': '소모품',
        'unit': 'box',
        'min_stock': 2,
        'purchase_price': 8000,
        'sale_price': 0,
        'storage': '창고',
        'expiry_days': 720,
        'qty': 30,
    },
)


@click.command('seed-demo')
@click.option('--tenant-id', required=True, help='Clinic tenant to seed')
@click.option('--clinic-name', default='데모 클리닉', show_default=True)
@with_appcontext
def seed_demo_command(tenant_id, clinic_name):
    """Seed a clinic, a supplier with one manager and a few products with batches"""
    try:
        clinic = Clinic.for_tenant(tenant_id).first()
        if clinic is None:
            db.session.add(Clinic(tenant_id=tenant_id, name=clinic_name))
            click.echo(f"✅ Created clinic {clinic_name} ({tenant_id})")

        supplier = Supplier.query.filter_by(business_number=DEMO_SUPPLIER_BUSINESS_NUMBER).first()
        if supplier is None:
            supplier = Supplier(
                tenant_id=f'supplier-{tenant_id}',
                company_name='데모 메디칼',
                business_number=DEMO_SUPPLIER_BUSINESS_NUMBER,
                company_phone='02-1234-5678',
            )
            supplier.managers.append(SupplierManager(name='홍길동', phone_number='01012345678', position='팀장'))
            db.session.add(supplier)
            click.echo("✅ Created supplier 데모 메디칼")
        db.session.commit()

        today = TimezoneUtils.clinic_today()
        created = 0
        for demo in DEMO_PRODUCTS:
            if Product.for_tenant(tenant_id).filter_by(barcode=demo['barcode']).first():
                continue
            data = {k: v for k, v in demo.items() if k not in ('expiry_days', 'qty')}
            data['supplier_id'] = supplier.id
            data['initial_stock'] = demo['qty']
            data['expiry_date'] = (today + timedelta(days=demo['expiry_days'])).isoformat()
            ProductService.create_product(tenant_id, data)
            created += 1

        click.echo(f"✅ Seeded {created} products for tenant {tenant_id}")
    except Exception as e:
        db.session.rollback()
        click.echo(f"❌ Error seeding demo data: {e}")
        raise


@click.command('issue-token')
@click.option('--tenant-id', required=True)
@click.option('--member-id', default='demo-member', show_default=True)
@click.option('--ttl-hours', type=int, default=None)
@with_appcontext
def issue_token_command(tenant_id, member_id, ttl_hours):
    """Print a member bearer token for local API calls"""
    secret = current_app.config.get('MEMBER_JWT_SECRET')
    if not secret:
        raise click.ClickException('MEMBER_JWT_SECRET is not configured')
    token = issue_member_token(
        tenant_id,
        member_id,
        secret,
        ttl_hours=ttl_hours or current_app.config.get('MEMBER_JWT_TTL_HOURS', 12),
    )
    click.echo(token)


@click.command('cache-stats')
@with_appcontext
def cache_stats_command():
    """Print statistics of all registered cache managers"""
    click.echo(json.dumps(all_cache_stats(), indent=2, ensure_ascii=False))


def register_commands(app):
    """Register CLI commands"""
    app.cli.add_command(seed_demo_command)
    app.cli.add_command(issue_token_command)
    app.cli.add_command(cache_stats_command)
