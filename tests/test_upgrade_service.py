import pytest

from core.plan_constants import DEFAULT_UPGRADE_REASON, PlanTier, UpgradeStatus
from models.tenant import Tenant
from services import upgrade_service
from services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)


def _request(db_session, user, as_actor, reason=None):
    return upgrade_service.request_upgrade(db_session, actor=as_actor(user), tenant_id=user.tenant_id, reason=reason)


def test_member_request_then_admin_approval_grants_requester_pro(db_session, acme, as_actor) -> None:
    tenant, admin, member = acme

    view = _request(db_session, member, as_actor)
    assert view.status == UpgradeStatus.PENDING.value
    assert view.requested_by.id == member.id
    assert view.reason == DEFAULT_UPGRADE_REASON

    result = upgrade_service.approve_upgrade(db_session, actor=as_actor(admin), tenant_id=tenant.id)

    assert result.changed is True
    assert result.status == UpgradeStatus.APPROVED.value
    assert result.user.id == member.id
    assert result.user_is_pro is True
    db_session.refresh(member)
    db_session.refresh(tenant)
    assert member.is_pro is True
    assert tenant.upgrade_reviewed_by == admin.id
    assert tenant.plan == PlanTier.FREE.value


def test_second_request_while_pending_is_rejected(db_session, acme, make_user, as_actor) -> None:
    tenant, _admin, member = acme
    colleague = make_user(tenant, "colleague@acme.test")
    _request(db_session, member, as_actor)

    with pytest.raises(ConflictError) as exc_info:
        _request(db_session, colleague, as_actor)

    assert exc_info.value.code == "upgrade.already_pending"
    db_session.refresh(tenant)
    assert tenant.upgrade_requested_by == member.id


def test_admin_and_pro_members_cannot_request(db_session, acme, make_user, as_actor) -> None:
    tenant, admin, _member = acme
    pro_member = make_user(tenant, "pro@acme.test", is_pro=True)

    for user in (admin, pro_member):
        with pytest.raises(ConflictError) as exc_info:
            _request(db_session, user, as_actor)
        assert exc_info.value.code == "upgrade.already_pro"


def test_pro_tenant_refuses_new_requests(db_session, make_tenant, make_user, as_actor) -> None:
    tenant = make_tenant("initech", plan=PlanTier.PRO.value)
    member = make_user(tenant, "user@initech.test")

    with pytest.raises(ConflictError) as exc_info:
        _request(db_session, member, as_actor)

    assert exc_info.value.code == "upgrade.already_pro"


def test_request_reason_is_trimmed_and_capped(db_session, acme, as_actor) -> None:
    _tenant, _admin, member = acme

    with pytest.raises(ValidationError):
        _request(db_session, member, as_actor, reason="x" * (upgrade_service.MAX_REASON_LENGTH + 1))

    view = _request(db_session, member, as_actor, reason="  need more notes  ")
    assert view.reason == "need more notes"


def test_repeated_approval_is_a_no_op(db_session, acme, as_actor) -> None:
    tenant, admin, member = acme
    _request(db_session, member, as_actor)
    first = upgrade_service.approve_upgrade(db_session, actor=as_actor(admin), tenant_id=tenant.id)

    second = upgrade_service.approve_upgrade(db_session, actor=as_actor(admin), tenant_id=tenant.id)

    assert second.changed is False
    assert second.status == UpgradeStatus.APPROVED.value
    assert second.reviewed_at == first.reviewed_at


def test_approval_after_revocation_needs_a_new_request(db_session, acme, as_actor) -> None:
    tenant, admin, member = acme
    _request(db_session, member, as_actor)
    upgrade_service.approve_upgrade(db_session, actor=as_actor(admin), tenant_id=tenant.id)
    upgrade_service.revoke_user_pro(
        db_session, actor=as_actor(admin), tenant_id=tenant.id, target_user_id=member.id, reason="Trial ended"
    )

    with pytest.raises(InvalidStateError):
        upgrade_service.approve_upgrade(db_session, actor=as_actor(admin), tenant_id=tenant.id)

    status = upgrade_service.get_upgrade_status(db_session, tenant_id=tenant.id, viewer=as_actor(member))
    assert status.status == UpgradeStatus.APPROVED.value
    assert status.effective_status == UpgradeStatus.NONE.value

    view = _request(db_session, member, as_actor)
    assert view.status == UpgradeStatus.PENDING.value


def test_reject_then_request_again(db_session, acme, as_actor) -> None:
    tenant, admin, member = acme
    _request(db_session, member, as_actor)

    result = upgrade_service.reject_upgrade(db_session, actor=as_actor(admin), tenant_id=tenant.id, reason="Budget")

    assert result.status == UpgradeStatus.REJECTED.value
    assert result.reason == "Budget"
    db_session.refresh(member)
    assert member.is_pro is False
    with pytest.raises(InvalidStateError):
        upgrade_service.reject_upgrade(db_session, actor=as_actor(admin), tenant_id=tenant.id)

    assert _request(db_session, member, as_actor).status == UpgradeStatus.PENDING.value


def test_review_without_pending_request_fails(db_session, acme, as_actor) -> None:
    tenant, admin, _member = acme

    with pytest.raises(InvalidStateError) as exc_info:
        upgrade_service.approve_upgrade(db_session, actor=as_actor(admin), tenant_id=tenant.id)

    assert exc_info.value.code == "upgrade.not_pending"


def test_members_cannot_review_and_admins_cannot_cross_tenants(db_session, acme, globex, as_actor) -> None:
    tenant, _admin, member = acme
    _globex_tenant, globex_admin, _globex_member = globex
    _request(db_session, member, as_actor)

    with pytest.raises(ForbiddenError):
        upgrade_service.approve_upgrade(db_session, actor=as_actor(member), tenant_id=tenant.id)
    with pytest.raises(ForbiddenError):
        upgrade_service.approve_upgrade(db_session, actor=as_actor(globex_admin), tenant_id=tenant.id)
    with pytest.raises(ForbiddenError):
        upgrade_service.list_pending_requests(db_session, actor=as_actor(member))

    db_session.refresh(tenant)
    assert tenant.upgrade_status == UpgradeStatus.PENDING.value


def test_pending_list_spans_tenants(db_session, acme, globex, as_actor) -> None:
    _acme_tenant, acme_admin, acme_member = acme
    _globex_tenant, _globex_admin, globex_member = globex
    _request(db_session, acme_member, as_actor)
    _request(db_session, globex_member, as_actor)

    pending = upgrade_service.list_pending_requests(db_session, actor=as_actor(acme_admin))

    assert {item.tenant_slug for item in pending} == {"acme", "globex"}
    assert all(item.requested_by is not None for item in pending)


def test_approval_fails_when_requester_is_gone(db_session, acme, as_actor) -> None:
    tenant, admin, member = acme
    _request(db_session, member, as_actor)
    db_session.delete(member)
    db_session.commit()

    db_session.refresh(tenant)
    if tenant.upgrade_requested_by is None:
        expected = ConflictError
    else:
        expected = NotFoundError
    with pytest.raises(expected):
        upgrade_service.approve_upgrade(db_session, actor=as_actor(admin), tenant_id=tenant.id)

    db_session.refresh(tenant)
    assert tenant.upgrade_status == UpgradeStatus.PENDING.value


def test_transition_only_moves_rows_matching_the_expected_status(db_session, acme, as_actor) -> None:
    tenant, _admin, member = acme
    _request(db_session, member, as_actor)

    moved = upgrade_service._transition(
        db_session,
        tenant.id,
        Tenant.upgrade_status == UpgradeStatus.NONE.value,
        values={"upgrade_status": UpgradeStatus.REJECTED.value},
    )
    db_session.commit()

    assert moved is False
    db_session.refresh(tenant)
    assert tenant.upgrade_status == UpgradeStatus.PENDING.value


def test_grant_and_revoke_member_pro(db_session, acme, as_actor) -> None:
    tenant, admin, member = acme

    granted = upgrade_service.grant_user_pro(db_session, actor=as_actor(admin), tenant_id=tenant.id, target_user_id=member.id)
    assert granted.is_pro is True

    with pytest.raises(ValidationError) as exc_info:
        upgrade_service.revoke_user_pro(
            db_session, actor=as_actor(admin), tenant_id=tenant.id, target_user_id=member.id, reason="   "
        )
    assert exc_info.value.code == "user.reason_required"

    revoked = upgrade_service.revoke_user_pro(
        db_session, actor=as_actor(admin), tenant_id=tenant.id, target_user_id=member.id, reason="Downgrade"
    )
    assert revoked.is_pro is False
    assert revoked.cancellation_reason == "Downgrade"
    db_session.refresh(member)
    assert member.pro_cancelled_by == admin.id


def test_admin_pro_cannot_be_revoked(db_session, acme, make_user, as_actor) -> None:
    tenant, admin, _member = acme
    other_admin = make_user(tenant, "owner@acme.test", role="admin")

    with pytest.raises(ConflictError) as exc_info:
        upgrade_service.revoke_user_pro(
            db_session, actor=as_actor(admin), tenant_id=tenant.id, target_user_id=other_admin.id, reason="No"
        )

    assert exc_info.value.code == "user.target_is_admin"
    db_session.refresh(other_admin)
    assert other_admin.is_pro is True


def test_pro_management_is_tenant_scoped(db_session, acme, globex, as_actor) -> None:
    _tenant, admin, _member = acme
    globex_tenant, _globex_admin, globex_member = globex

    with pytest.raises(ForbiddenError):
        upgrade_service.grant_user_pro(
            db_session, actor=as_actor(admin), tenant_id=globex_tenant.id, target_user_id=globex_member.id
        )
    with pytest.raises(ForbiddenError):
        upgrade_service.grant_user_pro(
            db_session, actor=as_actor(admin), tenant_id=admin.tenant_id, target_user_id=globex_member.id
        )


def test_racing_requests_leave_a_single_requester(session_factory, acme, make_user, as_actor) -> None:
    tenant, _admin, member = acme
    colleague = make_user(tenant, "colleague@acme.test")
    tenant_id, member_actor, colleague_actor = tenant.id, as_actor(member), as_actor(colleague)

    first, second = session_factory(), session_factory()
    try:
        for session in (first, second):
            assert session.get(Tenant, tenant_id).upgrade_status == UpgradeStatus.NONE.value

        upgrade_service.request_upgrade(first, actor=member_actor, tenant_id=tenant_id)
        with pytest.raises(ConflictError) as exc_info:
            upgrade_service.request_upgrade(second, actor=colleague_actor, tenant_id=tenant_id)
    finally:
        first.close()
        second.close()

    assert exc_info.value.code == "upgrade.already_pending"
    fresh = session_factory()
    try:
        stored = fresh.get(Tenant, tenant_id)
        assert stored.upgrade_status == UpgradeStatus.PENDING.value
        assert stored.upgrade_requested_by == member_actor.user_id
    finally:
        fresh.close()


def test_revoke_is_part_of_the_public_surface() -> None:
    assert "revoke_user_pro" in upgrade_service.__all__
    assert "grant_user_pro" in upgrade_service.__all__
