#!/usr/bin/env python3
"""
Media Vault CLI

Runs registry calls against a snapshot on disk. Every mutating command
loads the snapshot, applies the call, advances the logical clock by one
block and saves.

Usage:
  mediavault init
  mediavault keygen <key.pem>
  mediavault register --title T --size N --description D -t tag [-t tag ...] (--caller P | --key K)
  mediavault modify <id> --title T --size N --description D -t tag ... (--caller P | --key K)
  mediavault transfer <id> <new_owner> (--caller P | --key K)
  mediavault delete <id> (--caller P | --key K)
  mediavault permit <id> <principal> [--deny] (--caller P | --key K)
  mediavault show <id> (--caller P | --key K)
  mediavault stats
  mediavault owner <id>
  mediavault perms <id> <principal>
  mediavault events [--content <id>]
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import RegistryConfig
from .errors import RegistryError, SnapshotError
from .identity import Identity
from .registry import MediaRegistry
from .snapshot import SnapshotStore

logger = logging.getLogger(__name__)


class CLIError(Exception):
    """Usage problem reported to the user without a traceback."""


def resolve_caller(args) -> str:
    """Caller principal from --caller, or derived from --key."""
    if getattr(args, "key", None):
        return Identity.load(args.key).principal
    if getattr(args, "caller", None):
        return args.caller
    raise CLIError("A caller is required: pass --caller or --key")


def open_registry(config: RegistryConfig) -> tuple[MediaRegistry, SnapshotStore]:
    store = SnapshotStore(config.state_dir)
    registry = store.load(prune_orphaned_grants=config.prune_orphaned_grants)
    if registry is None:
        raise CLIError(f"No registry at {config.state_dir}; run 'mediavault init' first")
    return registry, store


def commit(registry: MediaRegistry, store: SnapshotStore) -> None:
    height = registry.clock.advance()
    store.save(registry)
    logger.debug(f"Committed at height {height}")


def emit(data) -> None:
    print(json.dumps(data, indent=2))


def cmd_init(args, config: RegistryConfig):
    store = SnapshotStore(config.state_dir)
    if store.exists():
        raise CLIError(f"Registry already initialized at {config.state_dir}")
    registry = config.create_registry()
    store.save(registry)
    print(f"Initialized registry at {config.state_dir}")
    print(f"Master authority: {registry.master_authority}")


def cmd_keygen(args, config: RegistryConfig):
    identity = Identity.create()
    path = identity.save(args.path)
    print(f"Key written to: {path}")
    print(f"Principal: {identity.principal}")


def cmd_register(args, config: RegistryConfig):
    caller = resolve_caller(args)
    registry, store = open_registry(config)
    content_id = registry.register(caller, args.title, args.size, args.description, args.tag or [])
    commit(registry, store)
    print(f"Registered content {content_id}")


def cmd_modify(args, config: RegistryConfig):
    caller = resolve_caller(args)
    registry, store = open_registry(config)
    registry.modify(caller, args.content_id, args.title, args.size, args.description, args.tag or [])
    commit(registry, store)
    print(f"Modified content {args.content_id}")


def cmd_transfer(args, config: RegistryConfig):
    caller = resolve_caller(args)
    registry, store = open_registry(config)
    registry.transfer_ownership(caller, args.content_id, args.new_owner)
    commit(registry, store)
    print(f"Transferred content {args.content_id} to {args.new_owner}")


def cmd_delete(args, config: RegistryConfig):
    caller = resolve_caller(args)
    registry, store = open_registry(config)
    registry.delete(caller, args.content_id)
    commit(registry, store)
    print(f"Deleted content {args.content_id}")


def cmd_permit(args, config: RegistryConfig):
    caller = resolve_caller(args)
    registry, store = open_registry(config)
    allowed = not args.deny
    registry.set_permission(caller, args.content_id, args.principal, allowed)
    commit(registry, store)
    print(f"{'Granted' if allowed else 'Denied'} {args.principal} on content {args.content_id}")


def cmd_show(args, config: RegistryConfig):
    caller = resolve_caller(args)
    registry, _ = open_registry(config)
    emit(registry.retrieve(caller, args.content_id).to_dict())


def cmd_stats(args, config: RegistryConfig):
    registry, _ = open_registry(config)
    stats = registry.vault_statistics().to_dict()
    stats["live_records"] = len(registry)
    stats["height"] = registry.clock.now()
    emit(stats)


def cmd_owner(args, config: RegistryConfig):
    registry, _ = open_registry(config)
    print(registry.owner_of(args.content_id))


def cmd_perms(args, config: RegistryConfig):
    registry, _ = open_registry(config)
    emit(registry.check_permissions(args.content_id, args.principal).to_dict())


def cmd_events(args, config: RegistryConfig):
    registry, _ = open_registry(config)
    if args.content is not None:
        events = registry.events.find_by_content(args.content)
    else:
        events = registry.events.list()
    for event in events:
        print(f"#{event.sequence} @{event.height} {event.event_type} "
              f"content={event.content_id} actor={event.actor}")


COMMANDS = {
    "init": cmd_init,
    "keygen": cmd_keygen,
    "register": cmd_register,
    "modify": cmd_modify,
    "transfer": cmd_transfer,
    "delete": cmd_delete,
    "permit": cmd_permit,
    "show": cmd_show,
    "stats": cmd_stats,
    "owner": cmd_owner,
    "perms": cmd_perms,
    "events": cmd_events,
}


def _add_caller_args(p: argparse.ArgumentParser):
    group = p.add_mutually_exclusive_group()
    group.add_argument("--caller", help="Caller principal")
    group.add_argument("--key", help="Private key PEM; caller is derived from it")


def _add_metadata_args(p: argparse.ArgumentParser):
    p.add_argument("--title", required=True, help="Title (1-64 chars)")
    p.add_argument("--size", type=int, required=True, help="Size in bytes")
    p.add_argument("--description", required=True, help="Description (1-128 chars)")
    p.add_argument("-t", "--tag", action="append", help="Tag (repeatable, 1-10)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mediavault",
        description="Media Vault - media metadata registry",
    )
    parser.add_argument("-c", "--config", default="vault.yaml",
                        help="Config YAML file (default: vault.yaml)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("init", help="Create an empty registry")

    keygen_parser = subparsers.add_parser("keygen", help="Generate a signing key")
    keygen_parser.add_argument("path", help="Where to write the private key")

    register_parser = subparsers.add_parser("register", help="Register content")
    _add_metadata_args(register_parser)
    _add_caller_args(register_parser)

    modify_parser = subparsers.add_parser("modify", help="Replace content metadata")
    modify_parser.add_argument("content_id", type=int)
    _add_metadata_args(modify_parser)
    _add_caller_args(modify_parser)

    transfer_parser = subparsers.add_parser("transfer", help="Transfer ownership")
    transfer_parser.add_argument("content_id", type=int)
    transfer_parser.add_argument("new_owner")
    _add_caller_args(transfer_parser)

    delete_parser = subparsers.add_parser("delete", help="Delete content")
    delete_parser.add_argument("content_id", type=int)
    _add_caller_args(delete_parser)

    permit_parser = subparsers.add_parser("permit", help="Set a view permission")
    permit_parser.add_argument("content_id", type=int)
    permit_parser.add_argument("principal")
    permit_parser.add_argument("--deny", action="store_true",
                               help="Record an explicit denial instead of a grant")
    _add_caller_args(permit_parser)

    show_parser = subparsers.add_parser("show", help="Retrieve content metadata")
    show_parser.add_argument("content_id", type=int)
    _add_caller_args(show_parser)

    subparsers.add_parser("stats", help="Registry statistics")

    owner_parser = subparsers.add_parser("owner", help="Show the owner of content")
    owner_parser.add_argument("content_id", type=int)

    perms_parser = subparsers.add_parser("perms", help="Check a principal's permissions")
    perms_parser.add_argument("content_id", type=int)
    perms_parser.add_argument("principal")

    events_parser = subparsers.add_parser("events", help="List journal events")
    events_parser.add_argument("--content", type=int, help="Only events for this content id")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        if args.command == "keygen":
            config = None
        else:
            config = RegistryConfig.from_file(args.config)
            config.configure_logging()
        handler(args, config)
    except RegistryError as e:
        print(f"ERROR: {e.kind}: {e.message}", file=sys.stderr)
        return 1
    except (CLIError, SnapshotError, FileNotFoundError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
