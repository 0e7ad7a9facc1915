"""Unit tests for group creation and the membership toggle."""

from __future__ import annotations

import pytest

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, StorageError
from app.modules.groups.schemas import GeoPoint, GroupCreate
from app.modules.groups.service import GroupService


def _create(service: GroupService, creator: str, name: str = "Teff Growers", **extra) -> str:
    data = GroupCreate(name=name, description="Growers of teff", type="Category-Based", category="Grains", **extra)
    return service.create_group(data, creator).id


def test_create_group_makes_creator_owner_member(db, make_user) -> None:
    farmer = make_user("Abebe Kebede", role="farmer")
    service = GroupService(db)

    group = service.create_group(
        GroupCreate(name="Teff Growers", description="Growers of teff", type="Category-Based", category="Grains"),
        farmer,
    )

    assert group.user_id == farmer
    assert group.members == [farmer]
    assert group.member_count == 1
    [row] = db.rows("group_members")
    assert row["role"] == "owner"


def test_create_location_group_keeps_coordinates_and_drops_category(db, make_user) -> None:
    farmer = make_user("Abebe Kebede", role="farmer")
    service = GroupService(db)

    group = service.create_group(
        GroupCreate(
            name="Bahir Dar Farmers",
            description="Around the lake",
            type="Location-Based",
            category="ignored",
            location_name="Bahir Dar",
            location=GeoPoint(latitude=11.59, longitude=37.39),
        ),
        farmer,
    )

    assert group.category is None
    assert group.location_name == "Bahir Dar"
    assert (group.latitude, group.longitude) == (11.59, 37.39)


def test_create_group_duplicate_name_conflicts(db, make_user) -> None:
    farmer = make_user("Abebe Kebede", role="farmer")
    service = GroupService(db)
    _create(service, farmer)

    with pytest.raises(ConflictError):
        _create(service, farmer)


def test_toggle_twice_restores_membership(db, make_user) -> None:
    farmer = make_user("Abebe Kebede", role="farmer")
    buyer = make_user("Sara Tesfaye")
    service = GroupService(db)
    group_id = _create(service, farmer)

    assert service.toggle_membership(group_id, buyer) is True
    assert service.list_member_ids(group_id) == {farmer, buyer}

    assert service.toggle_membership(group_id, buyer) is False
    assert service.list_member_ids(group_id) == {farmer}


def test_creator_cannot_leave(db, make_user) -> None:
    farmer = make_user("Abebe Kebede", role="farmer")
    service = GroupService(db)
    group_id = _create(service, farmer)

    with pytest.raises(ForbiddenError):
        service.toggle_membership(group_id, farmer)

    assert service.is_member(group_id, farmer)
    assert service.list_member_ids(group_id) == {farmer}


def test_toggle_leaves_other_members_untouched(db, make_user) -> None:
    farmer = make_user("Abebe Kebede", role="farmer")
    first = make_user("Sara Tesfaye")
    second = make_user("Dawit Alemu")
    service = GroupService(db)
    group_id = _create(service, farmer)
    service.toggle_membership(group_id, first)
    service.toggle_membership(group_id, second)

    service.toggle_membership(group_id, first)

    assert service.list_member_ids(group_id) == {farmer, second}


def test_toggle_unknown_group_not_found(db, make_user) -> None:
    buyer = make_user("Sara Tesfaye")

    with pytest.raises(NotFoundError):
        GroupService(db).toggle_membership("missing-group", buyer)


def test_list_groups_search_is_case_insensitive(db, make_user) -> None:
    farmer = make_user("Abebe Kebede", role="farmer")
    service = GroupService(db)
    _create(service, farmer, name="Teff Growers")
    _create(service, farmer, name="Coffee Cooperative")

    names = [g.name for g in service.list_groups(search="COFFEE")]

    assert names == ["Coffee Cooperative"]
    assert len(service.list_groups()) == 2


def test_storage_failure_raises_storage_error(db, make_user) -> None:
    farmer = make_user("Abebe Kebede", role="farmer")
    service = GroupService(db)
    group_id = _create(service, farmer)
    db.fail("group_members", "select")

    with pytest.raises(StorageError):
        service.is_member(group_id, farmer)
