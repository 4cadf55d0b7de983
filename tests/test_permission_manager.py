import pytest

from homexpert.security.permissions import (
    ALL_PERMISSIONS,
    ROLES,
    UNKNOWN_ROLE_LEVEL,
    PermissionCode,
    PermissionManager,
    catalog_by_module,
)


def test_admin_has_every_permission_even_without_a_list():
    """Test that the admin role short-circuits every check"""
    manager = PermissionManager("Admin", [])

    assert manager.is_admin
    assert manager.has_permission("payments:reconcile")
    assert manager.has_permission(PermissionCode.SYSTEM_BACKUP_RESTORE)
    assert manager.get_all_permissions() == ALL_PERMISSIONS


def test_empty_permission_list_denies_everything():
    """Test that a non-admin role with no permissions is denied"""
    manager = PermissionManager("telecaller", [])

    assert not manager.has_permission("leads:view")
    assert not manager.has_any_permission(["leads:view", "vendors:view"])
    assert manager.get_all_permissions() == []


def test_non_admin_checks_only_the_given_list():
    """Test that the static role table is not consulted at request time"""
    manager = PermissionManager("telecaller", ["leads:view"])

    assert manager.has_permission("leads:view")
    assert manager.has_permission(PermissionCode.LEADS_VIEW)
    # In the seeded telecaller role but not in this list
    assert not manager.has_permission("leads:assign")


def test_any_and_all_permission_checks():
    """Test has_any_permission and has_all_permissions"""
    manager = PermissionManager("helpline", ["leads:view", "leads:create"])

    assert manager.has_any_permission(["system:settings", "leads:create"])
    assert manager.has_all_permissions(["leads:view", "leads:create"])
    assert not manager.has_all_permissions(["leads:view", "leads:delete"])


def test_route_access():
    """Test route access through the route permission table"""
    manager = PermissionManager("helpline", ["dashboard:view", "leads:view"])

    assert manager.can_access_route("/admin/leads")
    assert not manager.can_access_route("/admin/roles")
    assert manager.can_access_route("/profile")
    assert manager.can_access_route("/some/unmapped/route")


def test_permission_levels():
    """Test role levels, with unknown roles ranked last"""
    assert PermissionManager("admin").get_permission_level() == 1
    assert PermissionManager("helpline").get_permission_level() == 2
    assert PermissionManager("telecaller").get_permission_level() == 3
    assert PermissionManager("vendor").get_permission_level() == 4
    assert PermissionManager("intern").get_permission_level() == UNKNOWN_ROLE_LEVEL


def test_bulk_and_financial_capabilities():
    """Test bulk operation and financial capability helpers"""
    telecaller = PermissionManager("telecaller", ROLES["telecaller"].permissions)
    vendor = PermissionManager("vendor", ROLES["vendor"].permissions)

    assert telecaller.can_perform_bulk_operations()
    assert telecaller.can_manage_financials()
    assert not vendor.can_perform_bulk_operations()
    assert not vendor.can_manage_financials()


def test_permission_code_parsing():
    """Test PermissionCode parsing and its module/action parts"""
    code = PermissionCode.from_string("SUBSCRIPTIONS:Manage_Vendor_Subscriptions")

    assert code is PermissionCode.SUBSCRIPTIONS_MANAGE_VENDOR_SUBSCRIPTIONS
    assert code.module == "subscriptions"
    assert code.action == "manage_vendor_subscriptions"

    with pytest.raises(ValueError):
        PermissionCode.from_string("leads:teleport")


def test_catalog_grouping_covers_every_permission():
    """Test that the grouped catalog holds each permission exactly once"""
    grouped = catalog_by_module()

    flattened = [perm for perms in grouped.values() for perm in perms]
    assert sorted(flattened) == sorted(ALL_PERMISSIONS)
    assert "system:role_management" in grouped["system"]


def test_quantifiers_over_empty_input():
    """Test any() of nothing is false and all() of nothing is true"""
    manager = PermissionManager("helpline", ["leads:view"])

    assert manager.has_all_permissions([]) is True
    assert manager.has_any_permission([]) is False
