# Overview: Pytest coverage for the material catalog, plan cap and soft delete.

import pytest

from stockledger.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PlanLimitExceededError,
)
from stockledger.models import Material
from stockledger.services import ledger_service, material_service, tenant_service


class TestCreateMaterial:

    def test_create_starts_at_zero(self, db_session, free_admin, context_for):
        ctx = context_for(free_admin)
        material = material_service.create_material(ctx, name="Copper Wire", unit="m")

        data = material.to_dict()
        assert data["name"] == "Copper Wire"
        assert data["unit"] == "m"
        assert data["current_stock"] == 0.0
        assert data["tenant_id"] == ctx.tenant_id
        assert data["deleted_at"] is None

    def test_user_role_cannot_create(self, db_session, free_user, context_for):
        with pytest.raises(AuthorizationError):
            material_service.create_material(context_for(free_user), name="Bolts", unit="pcs")

        assert db_session.query(Material).count() == 0

    def test_duplicate_name_conflicts(self, db_session, free_admin, context_for):
        ctx = context_for(free_admin)
        material_service.create_material(ctx, name="Bolts", unit="pcs")

        with pytest.raises(ConflictError) as exc_info:
            material_service.create_material(ctx, name="Bolts", unit="box")

        assert exc_info.value.status_code == 409
        assert exc_info.value.message == "Material with name 'Bolts' already exists in this tenant."

    def test_same_name_in_other_tenant(self, db_session, free_admin, other_admin, context_for):
        material_service.create_material(context_for(free_admin), name="Bolts", unit="pcs")
        material = material_service.create_material(context_for(other_admin), name="Bolts", unit="pcs")

        assert material.tenant_id == other_admin.tenant_id

    def test_deleted_name_stays_reserved(self, db_session, free_admin, context_for):
        ctx = context_for(free_admin)
        material = material_service.create_material(ctx, name="Bolts", unit="pcs")
        material_service.soft_delete_material(ctx, material.id)

        with pytest.raises(ConflictError):
            material_service.create_material(ctx, name="Bolts", unit="pcs")


class TestFreePlanCap:

    def test_sixth_material_rejected(self, db_session, free_admin, context_for):
        ctx = context_for(free_admin)
        for i in range(5):
            material_service.create_material(ctx, name=f"Material {i}", unit="kg")

        with pytest.raises(PlanLimitExceededError) as exc_info:
            material_service.create_material(ctx, name="Material 5", unit="kg")

        assert exc_info.value.status_code == 403
        assert db_session.query(Material).filter_by(tenant_id=ctx.tenant_id).count() == 5

    def test_delete_frees_a_slot(self, db_session, free_admin, context_for):
        ctx = context_for(free_admin)
        materials = [
            material_service.create_material(ctx, name=f"Material {i}", unit="kg")
            for i in range(5)
        ]
        material_service.soft_delete_material(ctx, materials[2].id)

        material = material_service.create_material(ctx, name="Replacement", unit="kg")
        assert material.id is not None

    def test_pro_plan_uncapped(self, db_session, pro_admin, context_for):
        ctx = context_for(pro_admin)
        for i in range(7):
            material_service.create_material(ctx, name=f"Material {i}", unit="kg")

        assert len(material_service.list_materials(ctx)) == 7

    def test_downgrade_blocks_further_creates(self, db_session, pro_tenant, context_for):
        tenant, admin = pro_tenant
        for i in range(6):
            material_service.create_material(context_for(admin), name=f"Material {i}", unit="kg")

        tenant_service.set_tenant_plan(tenant_id=tenant.id, plan="FREE")

        with pytest.raises(PlanLimitExceededError):
            material_service.create_material(context_for(admin), name="One More", unit="kg")
        assert len(material_service.list_materials(context_for(admin))) == 6


class TestListMaterials:

    @pytest.fixture
    def catalog(self, pro_admin, context_for):
        ctx = context_for(pro_admin)
        for name, unit in [("Steel Rod", "kg"), ("Steel Plate", "KG"), ("Copper Wire", "m"), ("100%_Cotton", "m")]:
            material_service.create_material(ctx, name=name, unit=unit)
        return ctx

    def test_newest_first(self, db_session, catalog):
        names = [m.name for m in material_service.list_materials(catalog)]
        assert names == ["100%_Cotton", "Copper Wire", "Steel Plate", "Steel Rod"]

    def test_name_filter_case_insensitive_substring(self, db_session, catalog):
        names = {m.name for m in material_service.list_materials(catalog, name="steel")}
        assert names == {"Steel Rod", "Steel Plate"}

    def test_name_filter_wildcards_are_literal(self, db_session, catalog):
        names = [m.name for m in material_service.list_materials(catalog, name="%_")]
        assert names == ["100%_Cotton"]

    def test_unit_filter_case_insensitive_exact(self, db_session, catalog):
        names = {m.name for m in material_service.list_materials(catalog, unit="kg")}
        assert names == {"Steel Rod", "Steel Plate"}

    def test_combined_filters(self, db_session, catalog):
        names = [m.name for m in material_service.list_materials(catalog, name="rod", unit="KG")]
        assert names == ["Steel Rod"]

    def test_deleted_hidden(self, db_session, catalog):
        rod = material_service.list_materials(catalog, name="Steel Rod")[0]
        material_service.soft_delete_material(catalog, rod.id)

        names = {m.name for m in material_service.list_materials(catalog)}
        assert "Steel Rod" not in names

    def test_user_role_may_list(self, db_session, free_user, free_admin, context_for):
        material_service.create_material(context_for(free_admin), name="Bolts", unit="pcs")
        assert len(material_service.list_materials(context_for(free_user))) == 1


class TestGetMaterial:

    def test_recent_transactions_capped_at_ten(self, db_session, pro_admin, context_for):
        ctx = context_for(pro_admin)
        material = material_service.create_material(ctx, name="Nails", unit="pcs")
        for qty in range(1, 13):
            ledger_service.apply_movement(ctx, material.id, "IN", qty)

        data = material_service.get_material(ctx, material.id)

        assert data["current_stock"] == float(sum(range(1, 13)))
        assert len(data["transactions"]) == 10
        assert [t["sequence"] for t in data["transactions"]] == list(range(12, 2, -1))

    def test_deleted_material_not_found(self, db_session, free_admin, context_for):
        ctx = context_for(free_admin)
        material = material_service.create_material(ctx, name="Nails", unit="pcs")
        material_service.soft_delete_material(ctx, material.id)

        with pytest.raises(NotFoundError):
            material_service.get_material(ctx, material.id)


class TestSoftDelete:

    def test_soft_delete_keeps_row_and_history(self, db_session, free_admin, context_for):
        ctx = context_for(free_admin)
        material = material_service.create_material(ctx, name="Nails", unit="pcs")
        ledger_service.apply_movement(ctx, material.id, "IN", 9)

        deleted = material_service.soft_delete_material(ctx, material.id)

        assert deleted.deleted_at is not None
        row = db_session.get(Material, material.id)
        assert row is not None
        assert float(row.current_stock) == 9.0

    def test_double_delete_not_found(self, db_session, free_admin, context_for):
        ctx = context_for(free_admin)
        material = material_service.create_material(ctx, name="Nails", unit="pcs")
        material_service.soft_delete_material(ctx, material.id)

        with pytest.raises(NotFoundError):
            material_service.soft_delete_material(ctx, material.id)

    def test_user_role_cannot_delete(self, db_session, free_admin, free_user, context_for):
        material = material_service.create_material(context_for(free_admin), name="Nails", unit="pcs")

        with pytest.raises(AuthorizationError):
            material_service.soft_delete_material(context_for(free_user), material.id)

        assert db_session.get(Material, material.id).deleted_at is None
