import argparse
import asyncio
import json
import sys

from pydantic import BaseModel

from . import __version__
from .config import Config, get_config
from .db import Database, get_db
from .logger import get_logger
from .models import ProjectModel, TeamModel, TeamRoleModel
from .policy_engine.evaluation import PolicyEngine, get_policy_engine
from .policy_engine.permissions import PERMISSIONS


def json_model_dump_kwargs(x: BaseModel, **kwargs) -> str:
    return json.dumps(x.model_dump(mode="json"), **kwargs)


def _policy_engine(config: Config) -> PolicyEngine:
    return get_policy_engine(config, get_logger(config))


def created_exit(entity: str, id_: int | None) -> int:
    """
    Helper function to exit with a different message/error code depending on whether the entity was created.
    """
    if id_ is not None:
        print(f"{entity.capitalize()} successfully created: {id_}")
        return 0

    print(f"{entity.capitalize()} was not created.", file=sys.stderr)
    return 1


def list_permissions_subcmd():
    """
    Sub-command of the list command, for listing all permissions known to the policy engine.
    """
    for p in PERMISSIONS:
        print(p)


def list_roles_subcmd(config: Config):
    """
    Sub-command of the list command, for listing the roles defined by the active policy.
    """
    engine = _policy_engine(config)
    for r in engine.roles:
        print(f"{r}: {', '.join(sorted(engine.permissions_for_role(r)))}")


async def list_teams_subcmd(db: Database):
    for t in await db.get_teams():
        print(json_model_dump_kwargs(t, sort_keys=True))


async def list_projects_subcmd(db: Database):
    for p in await db.get_projects():
        print(json_model_dump_kwargs(p, sort_keys=True))


async def list_cmd(config: Config, db: Database, args) -> int:
    """
    Command function to list entities related to the saved query service (either as defined by the policy, or listed
    from the database).
    """
    match entity := getattr(args, "entity", None):
        case "permissions":
            list_permissions_subcmd()
        case "roles":
            list_roles_subcmd(config)
        case "teams":
            await list_teams_subcmd(db)
        case "projects":
            await list_projects_subcmd(db)
        case _:
            print(f"Cannot list entity type: {entity}", file=sys.stderr)
            return 1
    return 0


async def list_saved_queries_cmd(_config: Config, db: Database, args) -> int:
    """
    Command to list the saved queries of a project, optionally filtered by type. Bypasses the authorization pipeline;
    intended for operators with direct database access.
    """
    project_id = args.project_id
    if (await db.get_project(project_id)) is None:
        print(f"No project found with ID: {project_id}", file=sys.stderr)
        return 1

    for sq in await db.get_saved_queries_for_project(project_id, args.type or None):
        print(json_model_dump_kwargs(sq, sort_keys=True))
    return 0


async def create_team_cmd(_config: Config, db: Database, args) -> int:
    return created_exit("team", await db.create_team(TeamModel(name=args.name)))


async def create_project_cmd(_config: Config, db: Database, args) -> int:
    return created_exit("project", await db.create_project(ProjectModel(team_id=args.team_id, name=args.name)))


async def set_team_role_cmd(config: Config, db: Database, args) -> int:
    """
    Command to give a user a role in a team, replacing any role they already hold there. The role must be defined by
    the active policy.
    """

    if args.role not in (roles := _policy_engine(config).roles):
        print(f"Unknown role: {args.role} (policy defines: {', '.join(roles)})", file=sys.stderr)
        return 1

    if (await db.get_team(args.team_id)) is None:
        print(f"No team found with ID: {args.team_id}", file=sys.stderr)
        return 1

    await db.set_team_role(TeamRoleModel(team_id=args.team_id, user_id=args.user_id, role=args.role))
    print("Done.")
    return 0


async def remove_team_role_cmd(_config: Config, db: Database, args) -> int:
    if not await db.remove_team_role(args.team_id, args.user_id):
        print(f"User {args.user_id} has no role in team {args.team_id}", file=sys.stderr)
        return 1

    print("Done.")
    return 0


async def get_cmd(_config: Config, db: Database, args) -> int:
    id_ = args.id
    match entity := getattr(args, "entity", None):
        case "saved-query":
            if (sq := await db.get_saved_query(id_)) is not None:
                print(json_model_dump_kwargs(sq, sort_keys=True, indent=2))
                return 0
            print(f"No saved query found with ID: {id_}", file=sys.stderr)
            return 1
        case _:
            print(f"Cannot get entity type: {entity}", file=sys.stderr)
            return 1


async def delete_cmd(_config: Config, db: Database, args) -> int:
    """
    Command to delete a saved query based on ID, or return an error message if it cannot be found.
    """

    id_ = args.id
    match entity := getattr(args, "entity", None):
        case "saved-query":
            if (sq := await db.get_saved_query(id_)) is None:
                print(f"No saved query found with ID: {id_}", file=sys.stderr)
                return 1
            await db.delete_saved_query(sq.project_id, id_)
            print("Done.")
            return 0
        case _:
            print(f"Cannot delete entity type: {entity}", file=sys.stderr)
            return 1


ENTITY_KWARGS = dict(type=str, help="The type of entity.")


async def main(args: list[str] | None, db: Database | None = None) -> int:
    cfg = get_config()
    args = args if args is not None else sys.argv[1:]
    db = db or get_db(cfg)

    parser = argparse.ArgumentParser(description="CLI for the saved query service.")

    parser.add_argument("--version", "-v", action="version", version=__version__)

    subparsers = parser.add_subparsers()

    # list -------------------------------------------------------------------------------------------------------------
    l_sub = subparsers.add_parser("list")
    l_sub.set_defaults(func=list_cmd)
    l_subparsers = l_sub.add_subparsers()

    for entity in ("permissions", "roles", "teams", "projects"):
        le = l_subparsers.add_parser(entity)
        le.set_defaults(entity=entity)

    lsq = l_subparsers.add_parser("saved-queries")
    lsq.set_defaults(func=list_saved_queries_cmd)
    lsq.add_argument("project_id", type=int, help="Project ID")
    lsq.add_argument("--type", type=str, default="", help="Only list saved queries of this type.")
    # ------------------------------------------------------------------------------------------------------------------

    # get --------------------------------------------------------------------------------------------------------------
    g_sub = subparsers.add_parser("get")
    g_sub.set_defaults(func=get_cmd)
    g_sub.add_argument("entity", choices=("saved-query",), **ENTITY_KWARGS)
    g_sub.add_argument("id", type=int, help="Entity ID")
    # ------------------------------------------------------------------------------------------------------------------

    # create -----------------------------------------------------------------------------------------------------------
    c = subparsers.add_parser("create")
    c_subparsers = c.add_subparsers()

    ct = c_subparsers.add_parser("team")
    ct.set_defaults(func=create_team_cmd)
    ct.add_argument("name", type=str, help="Team name.")

    cp = c_subparsers.add_parser("project")
    cp.set_defaults(func=create_project_cmd)
    cp.add_argument("team_id", type=int, help="ID of the team which owns the project.")
    cp.add_argument("name", type=str, help="Project name.")
    # ------------------------------------------------------------------------------------------------------------------

    # delete -----------------------------------------------------------------------------------------------------------
    d_sub = subparsers.add_parser("delete")
    d_sub.set_defaults(func=delete_cmd)
    d_sub.add_argument("entity", choices=("saved-query",), **ENTITY_KWARGS)
    d_sub.add_argument("id", type=int, help="Entity ID")
    # ------------------------------------------------------------------------------------------------------------------

    str_sub = subparsers.add_parser("set-team-role", help="Gives a user a role in a team, replacing any existing one.")
    str_sub.set_defaults(func=set_team_role_cmd)
    str_sub.add_argument("team_id", type=int, help="Team ID (use `saved_query_service list teams` to see teams)")
    str_sub.add_argument("user_id", type=str, help="User ID (token subject)")
    str_sub.add_argument("role", type=str, help="Role (use `saved_query_service list roles` to see roles)")

    rtr_sub = subparsers.add_parser("remove-team-role", help="Removes a user's role in a team.")
    rtr_sub.set_defaults(func=remove_team_role_cmd)
    rtr_sub.add_argument("team_id", type=int, help="Team ID")
    rtr_sub.add_argument("user_id", type=str, help="User ID (token subject)")

    # ------------------------------------------------------------------------------------------------------------------

    p_args = parser.parse_args(args)
    if not getattr(p_args, "func", None):
        p_args = parser.parse_args(
            (
                *args,
                "--help",
            )
        )

    return await p_args.func(cfg, db, p_args)


def main_sync(args: list[str] | None = None):  # pragma: no cover
    return asyncio.run(main(args))


if __name__ == "__main__":  # pragma: no cover
    exit(main_sync(sys.argv[1:]))
