import json
import pytest

from pathlib import Path
from structlog.stdlib import BoundLogger

from saved_query_service.models import PolicyModel, RoleGrantsModel
from saved_query_service.policy_engine.evaluation import (
    DEFAULT_POLICY,
    InvalidPolicy,
    PolicyEngine,
    determine_permissions,
    evaluate_role_and_permission,
    load_policy,
    resolve_role_grants,
)
from saved_query_service.policy_engine.permissions import (
    PERMISSIONS,
    PERMISSIONS_BY_STRING,
    Permission,
    PermissionDefinitionError,
    get_permission,
    parse_permission,
    P_CREATE_ANY_SAVED_QUERY,
    P_CREATE_OWN_SAVED_QUERY,
    P_DELETE_ANY_SAVED_QUERY,
    P_DELETE_OWN_SAVED_QUERY,
    P_READ_ANY_SAVED_QUERY,
    P_READ_OWN_SAVED_QUERY,
    P_UPDATE_ANY_SAVED_QUERY,
    P_UPDATE_OWN_SAVED_QUERY,
)


# Permissions ----------------------------------------------------------------------------------------------------------


def test_permission_definitions():
    assert len(PERMISSIONS) == 8
    assert len(PERMISSIONS_BY_STRING) == 8

    assert P_READ_ANY_SAVED_QUERY == "read:any:savedQuery"
    assert P_READ_ANY_SAVED_QUERY.action == "read"
    assert P_READ_ANY_SAVED_QUERY.scope == "any"
    assert P_READ_ANY_SAVED_QUERY.resource == "savedQuery"

    assert P_READ_ANY_SAVED_QUERY.gives == (P_READ_OWN_SAVED_QUERY,)
    assert P_READ_OWN_SAVED_QUERY.gives == ()


def test_parse_permission():
    assert parse_permission("update:own:savedQuery") is P_UPDATE_OWN_SAVED_QUERY
    assert get_permission("delete", "any", "savedQuery") is P_DELETE_ANY_SAVED_QUERY

    # Resource types other than the saved query one can still appear in policies
    p = parse_permission("read:any:project")
    assert isinstance(p, Permission)
    assert p.resource == "project"
    assert p not in PERMISSIONS_BY_STRING

    for bad in ("read:any", "read:any:savedQuery:extra", "share:any:savedQuery", "read:some:savedQuery", "read:any:"):
        with pytest.raises(PermissionDefinitionError):
            parse_permission(bad)


# Role resolution ------------------------------------------------------------------------------------------------------


def test_default_policy_roles():
    viewer = determine_permissions(DEFAULT_POLICY, "viewer")
    assert viewer == frozenset({P_READ_ANY_SAVED_QUERY, P_READ_OWN_SAVED_QUERY})

    editor = determine_permissions(DEFAULT_POLICY, "editor")
    assert P_CREATE_ANY_SAVED_QUERY in editor
    assert P_UPDATE_ANY_SAVED_QUERY in editor
    assert P_READ_ANY_SAVED_QUERY in editor  # inherited from viewer
    assert P_DELETE_ANY_SAVED_QUERY not in editor

    # owner -> admin -> editor -> viewer
    assert determine_permissions(DEFAULT_POLICY, "owner") == frozenset(PERMISSIONS)


def test_any_gives_own():
    for role in DEFAULT_POLICY.roles:
        ps = determine_permissions(DEFAULT_POLICY, role)
        for p in ps:
            assert set(p.gives) <= ps

    assert evaluate_role_and_permission(DEFAULT_POLICY, "editor", P_CREATE_OWN_SAVED_QUERY)
    assert evaluate_role_and_permission(DEFAULT_POLICY, "editor", P_UPDATE_OWN_SAVED_QUERY)
    assert not evaluate_role_and_permission(DEFAULT_POLICY, "editor", P_DELETE_OWN_SAVED_QUERY)


def test_own_does_not_give_any():
    policy = PolicyModel(roles={"author": RoleGrantsModel(grants=frozenset({P_UPDATE_OWN_SAVED_QUERY}))})
    assert evaluate_role_and_permission(policy, "author", P_UPDATE_OWN_SAVED_QUERY)
    assert not evaluate_role_and_permission(policy, "author", P_UPDATE_ANY_SAVED_QUERY)


def test_unknown_role_denied():
    assert determine_permissions(DEFAULT_POLICY, "guest") == frozenset()
    assert determine_permissions(DEFAULT_POLICY, None) == frozenset()
    for p in PERMISSIONS:
        assert not evaluate_role_and_permission(DEFAULT_POLICY, "guest", p)
        assert not evaluate_role_and_permission(DEFAULT_POLICY, None, p)


def test_cyclic_extension():
    policy = PolicyModel(
        roles={
            "a": RoleGrantsModel(grants=frozenset({P_READ_ANY_SAVED_QUERY}), extends=("b",)),
            "b": RoleGrantsModel(extends=("c",)),
            "c": RoleGrantsModel(extends=("a",)),
        }
    )
    with pytest.raises(InvalidPolicy):
        resolve_role_grants(policy, "a")


def test_self_extension():
    policy = PolicyModel(roles={"a": RoleGrantsModel(extends=("a",))})
    with pytest.raises(InvalidPolicy):
        resolve_role_grants(policy, "a")


def test_undefined_extension():
    policy = PolicyModel(roles={"a": RoleGrantsModel(extends=("missing",))})
    with pytest.raises(InvalidPolicy):
        resolve_role_grants(policy, "a")


def test_diamond_extension():
    policy = PolicyModel(
        roles={
            "base": RoleGrantsModel(grants=frozenset({P_READ_ANY_SAVED_QUERY})),
            "left": RoleGrantsModel(grants=frozenset({P_CREATE_ANY_SAVED_QUERY}), extends=("base",)),
            "right": RoleGrantsModel(grants=frozenset({P_UPDATE_ANY_SAVED_QUERY}), extends=("base",)),
            "top": RoleGrantsModel(extends=("left", "right")),
        }
    )
    assert resolve_role_grants(policy, "top") == frozenset(
        {P_READ_ANY_SAVED_QUERY, P_CREATE_ANY_SAVED_QUERY, P_UPDATE_ANY_SAVED_QUERY}
    )


# Policy engine --------------------------------------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_policy_engine(logger: BoundLogger):
    engine = PolicyEngine(DEFAULT_POLICY, logger)

    assert engine.policy == DEFAULT_POLICY
    assert engine.roles == ("admin", "editor", "owner", "viewer")

    assert await engine.evaluate("viewer", P_READ_ANY_SAVED_QUERY)
    assert not await engine.evaluate("viewer", P_CREATE_ANY_SAVED_QUERY)
    assert not await engine.evaluate(None, P_READ_ANY_SAVED_QUERY)
    assert not await engine.evaluate("guest", P_READ_ANY_SAVED_QUERY)

    assert engine.can("viewer", "read")
    assert engine.can("viewer", "read", scope="own")
    assert not engine.can("viewer", "update")
    assert engine.can("admin", "delete")
    assert not engine.can("owner", "read", resource="project")


def test_policy_engine_rejects_bad_policy(logger: BoundLogger):
    cyclic = PolicyModel(roles={"a": RoleGrantsModel(extends=("b",)), "b": RoleGrantsModel(extends=("a",))})
    with pytest.raises(InvalidPolicy):
        PolicyEngine(cyclic, logger)

    with pytest.raises(InvalidPolicy):
        PolicyEngine(PolicyModel(roles={"a": RoleGrantsModel(grants=frozenset({"read:all:savedQuery"}))}), logger)


# Policy files ---------------------------------------------------------------------------------------------------------


def test_load_policy(tmp_path: Path):
    path = tmp_path / "policy.json"
    path.write_text(
        json.dumps(
            {
                "roles": {
                    "reader": {"grants": ["read:any:savedQuery"]},
                    "writer": {"grants": ["create:any:savedQuery", "update:any:savedQuery"], "extends": ["reader"]},
                }
            }
        )
    )

    policy = load_policy(path)
    assert set(policy.roles) == {"reader", "writer"}
    assert policy.roles["writer"].extends == ("reader",)
    assert evaluate_role_and_permission(policy, "writer", P_READ_OWN_SAVED_QUERY)
    assert not evaluate_role_and_permission(policy, "reader", P_CREATE_ANY_SAVED_QUERY)


@pytest.mark.parametrize(
    "contents",
    [
        "not json",
        json.dumps({}),
        json.dumps({"roles": {"a": {"grants": ["read:any"]}}}),
        json.dumps({"roles": {"a": {"grants": ["read:any:savedQuery"], "other": 1}}}),
        json.dumps({"roles": {}, "extra": True}),
    ],
)
def test_load_policy_invalid(tmp_path: Path, contents: str):
    path = tmp_path / "policy.json"
    path.write_text(contents)
    with pytest.raises(InvalidPolicy):
        load_policy(path)


def test_load_policy_missing_file(tmp_path: Path):
    with pytest.raises(InvalidPolicy):
        load_policy(tmp_path / "does-not-exist.json")
