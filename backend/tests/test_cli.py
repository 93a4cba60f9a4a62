# Overview: Pytest coverage for the Flask CLI command groups.

from stockledger.models import Material, Tenant, User
from stockledger.services import ledger_service, material_service


class TestTenantCommands:

    def test_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "tenants", "create",
            "--name", "Umbrella",
            "--plan", "PRO",
            "--admin-email", "admin@umbrella.test",
            "--admin-name", "Umbrella Admin",
        ])
        assert result.exit_code == 0, result.output
        assert "PASS Created tenant: Umbrella" in result.output

        tenant = db_session.query(Tenant).filter_by(name="Umbrella").one()
        assert tenant.plan == "PRO"

        listing = runner.invoke(args=["tenants", "list"])
        assert tenant.id in listing.output

    def test_create_duplicate_fails(self, app, free_tenant):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "tenants", "create",
            "--name", "Acme Corp",
            "--admin-email", "someone@acme.test",
            "--admin-name", "Someone",
        ])

        assert result.exit_code == 1
        assert "FAIL" in result.output

    def test_set_plan(self, app, db_session, free_tenant):
        tenant, _ = free_tenant
        result = app.test_cli_runner().invoke(args=["tenants", "set-plan", "--tenant-id", tenant.id, "--plan", "PRO"])

        assert result.exit_code == 0, result.output
        db_session.expire_all()
        assert db_session.get(Tenant, tenant.id).plan == "PRO"

    def test_set_plan_unknown_tenant(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["tenants", "set-plan", "--tenant-id", "missing", "--plan", "PRO"])
        assert result.exit_code == 1


class TestUserCommands:

    def test_create_user(self, app, db_session, free_tenant):
        tenant, _ = free_tenant
        result = app.test_cli_runner().invoke(args=[
            "users", "create",
            "--tenant-id", tenant.id,
            "--email", "picker@acme.test",
            "--name", "Picker",
        ])

        assert result.exit_code == 0, result.output
        user = db_session.query(User).filter_by(email="picker@acme.test").one()
        assert user.role == "USER"
        assert user.tenant_id == tenant.id


class TestLedgerCommands:

    def test_verify_clean(self, app, db_session, free_admin, context_for):
        ctx = context_for(free_admin)
        material = material_service.create_material(ctx, name="Bolts", unit="pcs")
        ledger_service.apply_movement(ctx, material.id, "IN", 3)

        result = app.test_cli_runner().invoke(args=["ledger", "verify"])

        assert result.exit_code == 0, result.output
        assert "PASS Ledger consistent" in result.output

    def test_verify_reports_drift(self, app, db_session, free_admin, context_for):
        ctx = context_for(free_admin)
        material = material_service.create_material(ctx, name="Bolts", unit="pcs")
        row = db_session.get(Material, material.id)
        row.current_stock = 4
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["ledger", "verify", "--tenant-id", ctx.tenant_id])

        assert result.exit_code == 1
        assert "Bolts" in result.output

    def test_verify_unknown_tenant(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["ledger", "verify", "--tenant-id", "missing"])
        assert result.exit_code == 1
