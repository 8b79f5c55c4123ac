import pytest

from core.plan_constants import FREE_PLAN_NOTE_LIMIT, PlanTier
from core.roles import ADMIN
from services import note_service, upgrade_service
from services.access_gate import MAX_TITLE_LENGTH, create_note_with_gate
from services.entitlement_service import count_tenant_notes
from services.errors import ForbiddenError, LimitReachedError, NotFoundError, ValidationError
from services.user_service import Actor


def _fill_quota(db_session, actor) -> None:
    for index in range(FREE_PLAN_NOTE_LIMIT):
        create_note_with_gate(db_session, actor=actor, title=f"Note {index}", content="body")


def test_free_member_hits_the_ceiling(db_session, acme, as_actor) -> None:
    tenant, _admin, member = acme
    actor = as_actor(member)
    _fill_quota(db_session, actor)

    with pytest.raises(LimitReachedError) as exc_info:
        create_note_with_gate(db_session, actor=actor, title="One more", content="body")

    detail = exc_info.value.to_detail()
    assert detail["code"] == "note.limit_reached"
    assert detail["limit"] == FREE_PLAN_NOTE_LIMIT
    assert detail["current"] == FREE_PLAN_NOTE_LIMIT
    assert detail["canRequestUpgrade"] is True
    assert count_tenant_notes(db_session, tenant.id) == FREE_PLAN_NOTE_LIMIT


def test_ceiling_counts_notes_of_every_tenant_user(db_session, acme, as_actor) -> None:
    tenant, admin, member = acme
    _fill_quota(db_session, as_actor(admin))

    with pytest.raises(LimitReachedError):
        create_note_with_gate(db_session, actor=as_actor(member), title="Mine", content="body")

    create_note_with_gate(db_session, actor=as_actor(admin), title="Admin again", content="body")
    assert count_tenant_notes(db_session, tenant.id) == FREE_PLAN_NOTE_LIMIT + 1


def test_approved_upgrade_lifts_the_ceiling_for_the_requester(db_session, acme, make_user, as_actor) -> None:
    tenant, admin, member = acme
    colleague = make_user(tenant, "colleague@acme.test")
    _fill_quota(db_session, as_actor(member))
    upgrade_service.request_upgrade(db_session, actor=as_actor(member), tenant_id=tenant.id)

    with pytest.raises(LimitReachedError) as exc_info:
        create_note_with_gate(db_session, actor=as_actor(member), title="Blocked", content="body")
    assert exc_info.value.extra["canRequestUpgrade"] is False

    upgrade_service.approve_upgrade(db_session, actor=as_actor(admin), tenant_id=tenant.id)
    note = create_note_with_gate(db_session, actor=as_actor(member), title="Unlocked", content="body")

    assert note.title == "Unlocked"
    with pytest.raises(LimitReachedError):
        create_note_with_gate(db_session, actor=as_actor(colleague), title="Still blocked", content="body")


def test_pro_tenant_has_no_ceiling(db_session, make_tenant, make_user, as_actor) -> None:
    tenant = make_tenant("initech", plan=PlanTier.PRO.value)
    member = make_user(tenant, "user@initech.test")

    for index in range(FREE_PLAN_NOTE_LIMIT + 2):
        create_note_with_gate(db_session, actor=as_actor(member), title=f"Note {index}", content="body")

    assert count_tenant_notes(db_session, tenant.id) == FREE_PLAN_NOTE_LIMIT + 2


@pytest.mark.parametrize(
    "title, content",
    [
        ("", "body"),
        ("Title", "   "),
        (None, "body"),
        ("x" * (MAX_TITLE_LENGTH + 1), "body"),
    ],
)
def test_invalid_fields_are_rejected_before_counting(db_session, acme, as_actor, title, content) -> None:
    tenant, _admin, member = acme

    with pytest.raises(ValidationError):
        create_note_with_gate(db_session, actor=as_actor(member), title=title, content=content)

    assert count_tenant_notes(db_session, tenant.id) == 0


def test_token_role_must_match_stored_role(db_session, acme) -> None:
    _tenant, _admin, member = acme
    forged = Actor(user_id=member.id, tenant_id=member.tenant_id, role=ADMIN)

    with pytest.raises(ForbiddenError) as exc_info:
        create_note_with_gate(db_session, actor=forged, title="Sneaky", content="body")

    assert exc_info.value.code == "auth.role_stale"


def test_notes_are_invisible_across_tenants(db_session, acme, globex, as_actor) -> None:
    _tenant, admin, _member = acme
    _globex_tenant, globex_admin, _globex_member = globex
    record = note_service.create_note(db_session, actor=as_actor(admin), title="Acme only", content="secret")

    assert note_service.list_notes(db_session, actor=as_actor(globex_admin)) == []
    with pytest.raises(NotFoundError):
        note_service.get_note(db_session, actor=as_actor(globex_admin), note_id=record.id)
    with pytest.raises(NotFoundError):
        note_service.delete_note(db_session, actor=as_actor(globex_admin), note_id=record.id)

    listed = note_service.list_notes(db_session, actor=as_actor(admin))
    assert [item.id for item in listed] == [record.id]
    assert listed[0].author_email == "admin@acme.test"


def test_update_and_delete_free_quota_space(db_session, acme, as_actor) -> None:
    _tenant, _admin, member = acme
    actor = as_actor(member)
    _fill_quota(db_session, actor)
    first = note_service.list_notes(db_session, actor=actor)[0]

    updated = note_service.update_note(db_session, actor=actor, note_id=first.id, title="Renamed", content="new body")
    assert updated.title == "Renamed"

    note_service.delete_note(db_session, actor=actor, note_id=first.id)
    record = note_service.create_note(db_session, actor=actor, title="Replacement", content="body")
    assert record.title == "Replacement"


def test_insert_past_the_ceiling_is_rolled_back_on_recheck(db_session, acme, as_actor, monkeypatch) -> None:
    from services import access_gate

    tenant, _admin, member = acme
    actor = as_actor(member)
    _fill_quota(db_session, actor)
    real_count = access_gate.count_tenant_notes
    calls = []

    def stale_first_count(session, tenant_id):
        calls.append(tenant_id)
        if len(calls) == 1:
            return FREE_PLAN_NOTE_LIMIT - 1
        return real_count(session, tenant_id)

    monkeypatch.setattr(access_gate, "count_tenant_notes", stale_first_count)

    with pytest.raises(LimitReachedError) as exc_info:
        create_note_with_gate(db_session, actor=actor, title="Raced in", content="body")

    assert exc_info.value.extra == {
        "limit": FREE_PLAN_NOTE_LIMIT,
        "current": FREE_PLAN_NOTE_LIMIT,
        "canRequestUpgrade": True,
    }
    assert len(calls) == 2
    assert real_count(db_session, tenant.id) == FREE_PLAN_NOTE_LIMIT
