import pytest

from oppboard.admins import AdminRegistry
from oppboard.audit import AuditLog
from oppboard.db import Database
from oppboard.errors import AuthorizationError, NotFoundError, ValidationError
from oppboard.opportunities import OpportunityService, normalize_tags, validate_opportunity_fields


@pytest.fixture()
def service(database: Database) -> OpportunityService:
    return OpportunityService(database)


def test_create_sets_matching_timestamps_and_creator(service, draft_factory) -> None:
    opportunity_id = service.create(draft_factory(), "curator@example.com")

    stored = service.get(opportunity_id)
    assert stored.created_at == stored.updated_at
    assert stored.created_by == "curator@example.com"
    assert stored.status == "active"
    assert stored.category_tags == ["Program", "Bootcamp"]
    assert stored.regions == ["Global"]


def test_create_derives_logo_from_apply_url(service, draft_factory) -> None:
    opportunity_id = service.create(draft_factory(logo_url=None), "curator")

    logo = service.get(opportunity_id).logo_url
    assert logo == "https://www.google.com/s2/favicons?domain=startupschool.org&sz=64"


def test_create_keeps_missing_deadline(service, draft_factory) -> None:
    opportunity_id = service.create(draft_factory(deadline=None), "curator")

    assert service.get(opportunity_id).deadline is None


def test_create_rejects_unknown_status(service, draft_factory) -> None:
    with pytest.raises(ValidationError):
        service.create(draft_factory(status="draft"), "curator")


def test_mutations_strictly_advance_updated_at(service, draft_factory) -> None:
    opportunity_id = service.create(draft_factory(), "curator")
    seen = [service.get(opportunity_id).updated_at]

    service.update(opportunity_id, {"title": "Startup School 2026"}, "curator")
    seen.append(service.get(opportunity_id).updated_at)
    service.archive(opportunity_id, "curator")
    seen.append(service.get(opportunity_id).updated_at)
    service.update(opportunity_id, {"status": "inactive"}, "curator")
    seen.append(service.get(opportunity_id).updated_at)

    assert seen == sorted(seen)
    assert len(set(seen)) == len(seen)

    copy_id = service.duplicate(opportunity_id, "curator")
    assert service.get(copy_id).updated_at > seen[-1]


def test_update_replaces_supplied_fields_only(service, draft_factory) -> None:
    opportunity_id = service.create(draft_factory(), "curator")

    service.update(
        opportunity_id,
        {"provider": "YC", "category_tags": [" Grant", "grant ", "Funding"], "deadline": None},
        "editor",
    )

    stored = service.get(opportunity_id)
    assert stored.provider == "YC"
    assert stored.category_tags == ["Grant", "Funding"]
    assert stored.deadline is None
    assert stored.title == "YC Startup School"
    assert stored.created_by == "curator"


def test_update_rejects_unknown_or_cleared_fields(service, draft_factory) -> None:
    opportunity_id = service.create(draft_factory(), "curator")

    with pytest.raises(ValidationError):
        service.update(opportunity_id, {"created_at": 0}, "curator")
    with pytest.raises(ValidationError):
        service.update(opportunity_id, {"title": None}, "curator")
    with pytest.raises(ValidationError):
        service.update(opportunity_id, {"status": "deleted"}, "curator")


def test_update_rejects_wrongly_typed_values(service, draft_factory) -> None:
    opportunity_id = service.create(draft_factory(), "curator")
    before = service.get(opportunity_id)

    for changes in (
        {"deadline": "soon"},
        {"deadline": True},
        {"category_tags": 5},
        {"regions": ["EU", 3]},
        {"sort_order": "first"},
        {"title": 42},
        {"status": ["active"]},
    ):
        with pytest.raises(ValidationError):
            service.update(opportunity_id, changes, "curator")

    assert service.get(opportunity_id) == before


def test_update_cannot_clear_category_tags(service, draft_factory) -> None:
    opportunity_id = service.create(draft_factory(), "curator")

    for tags in ([], [" ", ""], ", ,"):
        with pytest.raises(ValidationError, match="category_tags"):
            service.update(opportunity_id, {"category_tags": tags}, "curator")

    assert service.get(opportunity_id).category_tags == ["Program", "Bootcamp"]


def test_create_rejects_wrongly_typed_draft(service, draft_factory, database: Database) -> None:
    with pytest.raises(ValidationError, match="deadline"):
        service.create(draft_factory(deadline="next week"), "curator")
    assert database.count("opportunities") == 0


def test_update_missing_record_raises_not_found(service) -> None:
    with pytest.raises(NotFoundError):
        service.update("missing", {"title": "x"}, "curator")


def test_list_filters_by_exact_status(service, draft_factory) -> None:
    active = service.create(draft_factory(title="Active one"), "curator")
    inactive = service.create(draft_factory(title="Inactive one", status="inactive"), "curator")
    archived = service.create(draft_factory(title="Archived one"), "curator")
    service.archive(archived, "curator")

    assert [item.id for item in service.list(status="active")] == [active]
    assert [item.id for item in service.list(status="inactive")] == [inactive]
    assert [item.id for item in service.list(status="archived")] == [archived]
    assert {item.id for item in service.list(status="all")} == {active, inactive, archived}
    assert {item.id for item in service.list(status="all", include_archived=False)} == {
        active,
        inactive,
        archived,
    }


def test_list_rejects_unknown_status_filter(service) -> None:
    with pytest.raises(ValidationError):
        service.list(status="pending")


def test_list_search_matches_title_description_or_provider(service, draft_factory) -> None:
    by_title = service.create(draft_factory(title="YC Fellowship", provider="Other"), "curator")
    by_description = service.create(
        draft_factory(title="Grant", description="Backed by yC alumni", provider="Other"),
        "curator",
    )
    by_provider = service.create(
        draft_factory(title="Credits", description="Cloud credits", provider="Y Combinator (YC)"),
        "curator",
    )
    service.create(
        draft_factory(title="Hack Week", description="Build things", provider="MLH"),
        "curator",
    )

    results = service.list(status="all", search="yc")

    assert {item.id for item in results} == {by_title, by_description, by_provider}
    assert len(service.list(search="")) == 4


def test_list_category_filter_and_categories(service, draft_factory) -> None:
    grant = service.create(draft_factory(category_tags=["Grant"]), "curator")
    service.create(draft_factory(category_tags=["Hackathon"], status="inactive"), "curator")

    assert [item.id for item in service.list(category="Grant")] == [grant]
    assert service.categories() == ["Grant"]


def test_list_orders_manual_sort_order_first(service, draft_factory) -> None:
    first = service.create(draft_factory(title="first"), "curator")
    pinned = service.create(draft_factory(title="pinned", sort_order=1), "curator")
    third = service.create(draft_factory(title="third"), "curator")

    assert [item.id for item in service.list()] == [pinned, first, third]


def test_duplicate_copies_everything_but_identity_timestamps_and_status(
    service, draft_factory
) -> None:
    source_id = service.create(draft_factory(status="inactive"), "curator")
    source = service.get(source_id)

    copy_id = service.duplicate(source_id, "other-admin")
    duplicate = service.get(copy_id)

    assert copy_id != source_id
    assert duplicate.status == "active"
    assert duplicate.created_at > source.created_at
    assert duplicate.created_at == duplicate.updated_at
    ignored = {"id", "createdAt", "updatedAt", "status"}
    source_fields = {k: v for k, v in source.to_dict().items() if k not in ignored}
    duplicate_fields = {k: v for k, v in duplicate.to_dict().items() if k not in ignored}
    assert source_fields == duplicate_fields

    service.update(copy_id, {"category_tags": ["Grant"], "regions": ["EU"]}, "curator")
    unchanged = service.get(source_id)
    assert unchanged.category_tags == ["Program", "Bootcamp"]
    assert unchanged.regions == ["Global"]


def test_archive_again_refreshes_archive_metadata(service, draft_factory) -> None:
    opportunity_id = service.create(draft_factory(), "curator")

    service.archive(opportunity_id, "first-admin")
    first = service.get(opportunity_id)
    service.archive(opportunity_id, "second-admin")
    second = service.get(opportunity_id)

    assert first.status == second.status == "archived"
    assert first.archived_by == "first-admin"
    assert second.archived_by == "second-admin"
    assert second.archived_at > first.archived_at


def test_archived_records_stay_editable(service, draft_factory) -> None:
    opportunity_id = service.create(draft_factory(), "curator")
    service.archive(opportunity_id, "curator")

    service.update(opportunity_id, {"status": "active"}, "curator")

    assert service.get(opportunity_id).status == "active"


def test_delete_is_at_most_once(service, draft_factory, database: Database) -> None:
    opportunity_id = service.create(draft_factory(), "curator")

    service.delete(opportunity_id, "curator")

    assert database.count("opportunities") == 0
    with pytest.raises(NotFoundError):
        service.delete(opportunity_id, "curator")
    with pytest.raises(NotFoundError):
        service.get(opportunity_id)


def test_registry_authorizer_guards_mutations(database: Database, draft_factory) -> None:
    registry = AdminRegistry(database)
    registry.add("curator@example.com", "Curator")
    service = OpportunityService(database, authorizer=registry)

    opportunity_id = service.create(draft_factory(), "curator@example.com")
    with pytest.raises(AuthorizationError):
        service.archive(opportunity_id, "visitor@example.com")

    admin_id = registry.get_by_email("curator@example.com").id
    registry.deactivate(admin_id)
    with pytest.raises(AuthorizationError):
        service.update(opportunity_id, {"title": "x"}, "curator@example.com")
    assert service.get(opportunity_id).status == "active"


def test_mutations_append_audit_entries(database: Database, draft_factory) -> None:
    audit = AuditLog(database)
    service = OpportunityService(database, audit=audit)

    opportunity_id = service.create(draft_factory(), "curator")
    service.update(opportunity_id, {"title": "Renamed"}, "curator")
    service.archive(opportunity_id, "curator")
    service.delete(opportunity_id, "curator")

    entries = audit.list(resource_id=opportunity_id)
    assert [entry.action for entry in entries] == ["delete", "archive", "update", "create"]
    assert entries[2].changes == {"title": "Renamed"}
    assert all(entry.resource_type == "opportunity" for entry in entries)


def test_normalize_tags_is_trimmed_case_insensitive_and_order_preserving() -> None:
    assert normalize_tags(["Grant", " grant ", "Bootcamp"]) == ["Grant", "Bootcamp"]
    assert normalize_tags("Grant, , bootcamp,GRANT") == ["Grant", "bootcamp"]
    assert normalize_tags(None) == []


def test_validate_opportunity_fields_requires_deadline_or_flag() -> None:
    values = {
        "title": "Grant",
        "provider": "Foundation",
        "apply_url": "https://example.org",
        "category_tags": ["Grant"],
        "deadline": None,
    }

    with pytest.raises(ValidationError, match="deadline"):
        validate_opportunity_fields(values)
    validate_opportunity_fields(values, deadline_not_sure=True)

    with pytest.raises(ValidationError, match="title, provider"):
        validate_opportunity_fields({**values, "title": " ", "provider": ""}, deadline_not_sure=True)
