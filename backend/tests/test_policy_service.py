# Overview: Pytest coverage for the role and plan gate.

"""
Policy gate tests.

authorize() is pure: these cases build RequestContext values directly and
never touch the database. enforce() is covered where it reads the material
count.
"""

import pytest

from stockledger.errors import AuthorizationError, PlanLimitExceededError, PlanRestrictedError
from stockledger.models.tenancy import PLAN_FREE, PLAN_PRO, ROLE_ADMIN, ROLE_USER
from stockledger.services import material_service, policy_service
from stockledger.services.identity_service import RequestContext


def _ctx(role=ROLE_ADMIN, plan=PLAN_FREE):
    return RequestContext(tenant_id="t-1", user_id="u-1", user_role=role, tenant_plan=plan)


class TestAuthorize:

    @pytest.mark.parametrize("action", [
        policy_service.CREATE_TRANSACTION,
        policy_service.VIEW_MATERIALS,
        policy_service.VIEW_HISTORY,
    ])
    def test_any_role_allowed(self, action):
        assert policy_service.authorize(action, _ctx(role=ROLE_USER)).allowed
        assert policy_service.authorize(action, _ctx(role=ROLE_ADMIN)).allowed

    @pytest.mark.parametrize("action", [
        policy_service.CREATE_MATERIAL,
        policy_service.DELETE_MATERIAL,
    ])
    def test_user_role_denied_admin_actions(self, action):
        decision = policy_service.authorize(action, _ctx(role=ROLE_USER, plan=PLAN_PRO), material_count=0)

        assert not decision.allowed
        assert isinstance(decision.error, AuthorizationError)
        assert decision.reason == "Action forbidden. Only ADMIN users can perform this operation."

    def test_free_admin_under_limit_may_create(self):
        decision = policy_service.authorize(policy_service.CREATE_MATERIAL, _ctx(), material_count=4)
        assert decision.allowed

    def test_free_admin_at_limit_denied(self):
        decision = policy_service.authorize(policy_service.CREATE_MATERIAL, _ctx(), material_count=5)

        assert not decision.allowed
        assert isinstance(decision.error, PlanLimitExceededError)
        assert decision.error.status_code == 403
        assert "limited to 5 materials" in decision.reason

    def test_custom_limit(self):
        decision = policy_service.authorize(
            policy_service.CREATE_MATERIAL, _ctx(), material_count=2, material_limit=2
        )
        assert not decision.allowed

    def test_pro_admin_ignores_count(self):
        decision = policy_service.authorize(
            policy_service.CREATE_MATERIAL, _ctx(plan=PLAN_PRO), material_count=500
        )
        assert decision.allowed

    def test_free_create_requires_count(self):
        with pytest.raises(ValueError):
            policy_service.authorize(policy_service.CREATE_MATERIAL, _ctx())

    def test_analytics_pro_only(self):
        denied = policy_service.authorize(policy_service.VIEW_ANALYTICS, _ctx(plan=PLAN_FREE))
        assert not denied.allowed
        assert isinstance(denied.error, PlanRestrictedError)

        assert policy_service.authorize(policy_service.VIEW_ANALYTICS, _ctx(role=ROLE_USER, plan=PLAN_PRO)).allowed

    def test_role_checked_before_plan_limit(self):
        decision = policy_service.authorize(
            policy_service.CREATE_MATERIAL, _ctx(role=ROLE_USER), material_count=99
        )
        assert isinstance(decision.error, AuthorizationError)

    def test_unknown_action_rejected(self):
        with pytest.raises(ValueError):
            policy_service.authorize("DROP_TABLES", _ctx())


class TestEnforce:

    def test_count_ignores_soft_deleted(self, db_session, free_admin, context_for):
        ctx = context_for(free_admin)
        materials = [
            material_service.create_material(ctx, name=f"Material {i}", unit="kg")
            for i in range(3)
        ]
        material_service.soft_delete_material(ctx, materials[0].id)

        assert policy_service.count_active_materials(ctx.tenant_id) == 2

    def test_enforce_raises_decision_error(self, db_session, free_user, context_for):
        with pytest.raises(AuthorizationError):
            policy_service.enforce(policy_service.DELETE_MATERIAL, context_for(free_user))
