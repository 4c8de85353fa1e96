from upkar.models import User, UserRole, Product

def test_seed_products_is_repeatable(app):
    runner = app.test_cli_runner()

    first = runner.invoke(args=['seed-products'])
    assert first.exit_code == 0
    assert 'Added 5 sample products' in first.output

    second = runner.invoke(args=['seed-products'])
    assert 'Added 0 sample products' in second.output
    assert Product.query.count() == 5

def test_seed_skips_existing_names(app, products):
    result = app.test_cli_runner().invoke(args=['seed-products'])
    assert 'Skipping Paracetamol 500mg' in result.output
    assert Product.query.count() == 5

def test_create_admin(app):
    result = app.test_cli_runner().invoke(args=[
        'create-admin', '--email', 'Owner@UpkarPharma.com', '--password', 'Str0ngPass', '--name', 'Owner'
    ])

    assert result.exit_code == 0
    user = User.query.filter_by(email='owner@upkarpharma.com').one()
    assert user.role == UserRole.ADMIN
    assert user.check_password('Str0ngPass')

def test_create_admin_rejects_duplicates_and_weak_passwords(app, admin):
    runner = app.test_cli_runner()

    duplicate = runner.invoke(args=['create-admin', '--email', admin.email, '--password', 'Str0ngPass'])
    assert duplicate.exit_code != 0
    assert 'already exists' in duplicate.output

    weak = runner.invoke(args=['create-admin', '--email', 'new@upkarpharma.com', '--password', 'short'])
    assert weak.exit_code != 0
    assert User.query.filter_by(email='new@upkarpharma.com').count() == 0

def test_production_init_checklist(app, admin):
    result = app.test_cli_runner().invoke(args=['production-init'])

    assert result.exit_code == 0
    assert '[x] Admin account exists' in result.output
    assert '[ ] SendGrid configured' in result.output
    assert '[ ] Database is not SQLite' in result.output

def test_send_credit_summaries_reports_failures(app, doctor, pending_doctor):
    result = app.test_cli_runner().invoke(args=['send-credit-summaries'])

    assert result.exit_code == 0
    assert f'Failed for {doctor.email}' in result.output
    assert 'Sent 0 of 1 credit summaries' in result.output
