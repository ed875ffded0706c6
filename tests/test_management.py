import json

import jwt

from clinicerp.models import Product, Supplier

from .conftest import JWT_SECRET


def test_seed_demo_is_idempotent(app, runner):
    result = runner.invoke(args=['seed-demo', '--tenant-id', 'demo-clinic'])
    assert result.exit_code == 0, result.output
    assert 'Seeded 3 products' in result.output

    again = runner.invoke(args=['seed-demo', '--tenant-id', 'demo-clinic'])
    assert 'Seeded 0 products' in again.output

    with app.app_context():
        assert Supplier.query.count() == 1
        products = Product.for_tenant('demo-clinic').all()
        assert len(products) == 3
        assert all(p.current_stock > 0 for p in products)


def test_issue_token(runner):
    result = runner.invoke(args=['issue-token', '--tenant-id', 'clinic-x', '--member-id', 'm-9'])
    assert result.exit_code == 0
    claims = jwt.decode(result.output.strip(), JWT_SECRET, algorithms=['HS256'])
    assert claims['tenant_id'] == 'clinic-x'
    assert claims['sub'] == 'm-9'


def test_cache_stats(runner):
    result = runner.invoke(args=['cache-stats'])
    assert result.exit_code == 0
    assert 'ProductsService' in json.loads(result.output)
