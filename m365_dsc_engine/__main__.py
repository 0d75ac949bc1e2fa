"""
M365 DSC Engine — Command line entry point

Usage:
    python -m m365_dsc_engine resources
    python -m m365_dsc_engine get  IntuneDeviceEnrollmentLimitRestriction -P DisplayName=Demo
    python -m m365_dsc_engine test IntuneDeviceEnrollmentLimitRestriction -P DisplayName=Demo -P Limit=5
    python -m m365_dsc_engine set  IntuneDeviceEnrollmentLimitRestriction -P DisplayName=Demo -P Limit=5
    python -m m365_dsc_engine set  --desired M365TenantConfig.json --what-if
    python -m m365_dsc_engine export --format dsc --output-dir ./export

Profile management:
    python -m m365_dsc_engine profile add <name> --tenant-id ... --client-id ...
    python -m m365_dsc_engine profile list
    python -m m365_dsc_engine profile remove <name>
    python -m m365_dsc_engine profile set-default <name>

get, test and export run read-only. set is the only command that writes.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from . import __version__
from .config import EngineConfig, CertificateAuth, ClientSecretAuth, DelegatedAuth
from .safety.guardian import SafetyGuardian
from .auth.authenticator import Authenticator, AuthenticationError
from .graph.client import GraphClient
from .engine import ConnectionContext, EventSink, export_tenant
from .resources import ALL_RESOURCES, get_resource
from .reporting import DscBlockFormatter, JsonFormatter, load_document, write_document
from .reporting.dsc_block import CONFIGURATION_DATA_FILE
from .schema import ValidationError
from .profiles import ProfileStore, TenantProfile, resolve_profile

logger = logging.getLogger("m365_dsc_engine")

EXIT_OK = 0
EXIT_DRIFT = 1
EXIT_USAGE = 2


# ---------------------------------------------------------------------------
# Profile management sub-commands
# ---------------------------------------------------------------------------

def _cmd_profile(args: argparse.Namespace) -> int:
    """Handle `profile add|list|remove|set-default` sub-commands."""
    store = ProfileStore.load()
    action = args.profile_action

    if action == "list":
        profiles = store.list_profiles()
        if not profiles:
            print("No profiles configured. Add one with:\n")
            print("  python -m m365_dsc_engine profile add <name> --tenant-id <GUID> --client-id <GUID>")
            return EXIT_OK
        print(f"\n  {'Name':<20s} {'Tenant ID':<38s} {'Client ID':<38s} {'Auth':<12s} {'Default'}")
        print(f"  {'─'*20} {'─'*38} {'─'*38} {'─'*12} {'─'*7}")
        for p in profiles:
            default_marker = "  ✓" if p.name == store.default_profile else ""
            print(f"  {p.name:<20s} {p.tenant_id:<38s} {p.client_id:<38s} {p.auth_mode:<12s}{default_marker}")
        print()
    elif action == "add":
        if store.get(args.profile_name):
            print(f"  Profile '{args.profile_name}' already exists. It will be overwritten.")
        profile = TenantProfile(
            name=args.profile_name,
            tenant_id=args.tenant_id,
            client_id=args.client_id,
            auth_mode=args.auth_mode,
            cert_path=args.cert_path or "./base64.txt",
            organization=args.organization or "",
        )
        store.add(profile, set_default=args.set_default)
        print(f"  ✅ Profile '{profile.name}' saved.")
    elif action == "remove":
        if not store.remove(args.profile_name):
            print(f"  ❌ Profile '{args.profile_name}' not found.")
            return EXIT_USAGE
        print(f"  ✅ Profile '{args.profile_name}' removed.")
    elif action == "set-default":
        if not store.set_default(args.profile_name):
            print(f"  ❌ Profile '{args.profile_name}' not found.")
            return EXIT_USAGE
        print(f"  ✅ Default profile set to '{args.profile_name}'.")
    else:
        print("Usage: python -m m365_dsc_engine profile {add|list|remove|set-default}")
        return EXIT_USAGE
    return EXIT_OK


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def _parameter(text: str) -> tuple[str, str]:
    name, sep, value = text.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected Name=Value, got {text!r}")
    return name.strip(), value


def _connection_options() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    group = parent.add_argument_group("connection")
    group.add_argument("--profile", "-p", default=None,
                       help="Tenant profile name (run 'profile list' to see available)")
    group.add_argument("--config", "-c", type=Path, help="Path to JSON configuration file")
    group.add_argument("--tenant-id", default=None, help="Tenant ID (overrides profile)")
    group.add_argument("--client-id", default=None, help="Client ID (overrides profile)")
    group.add_argument("--cert-path", type=Path, help="Base64-encoded PFX (overrides profile)")
    group.add_argument("--delegated", action="store_true", help="Use device-code authentication")
    group.add_argument("--secret", action="store_true",
                       help="Use client-secret authentication (secret from M365_CLIENT_SECRET)")
    group.add_argument("--beta", action="store_true", help="Route requests through the Graph beta endpoint")
    group.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    group.add_argument("--audit-log", type=Path, default=None,
                       help="Write the request guard and event audit record to this JSON file")
    return parent


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="m365_dsc_engine",
        description=f"M365 DSC Engine v{__version__}: Get/Test/Set/Export for Microsoft 365 tenants",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    conn = _connection_options()

    subparsers.add_parser("resources", help="List available resources")

    for command, help_text in (
        ("get", "Read the current state of one resource instance"),
        ("test", "Check whether desired state holds (exit 1 on drift)"),
        ("set", "Apply desired state"),
    ):
        p = subparsers.add_parser(command, parents=[conn], help=help_text)
        p.add_argument("resource", nargs="?", help="DSC resource name")
        p.add_argument("--param", "-P", dest="params", action="append", type=_parameter, default=[],
                       metavar="NAME=VALUE", help="Resource parameter, repeatable")
        p.add_argument("--desired", "-d", type=Path,
                       help="JSON file with desired state entries (an export in json format)")
        if command == "set":
            p.add_argument("--what-if", action="store_true", help="Show planned changes only")

    exp = subparsers.add_parser("export", parents=[conn], help="Export tenant configuration")
    exp.add_argument("--resources", nargs="+", default=None, help="Resources to export (default: all)")
    exp.add_argument("--format", choices=["dsc", "json"], default=None, help="Output format")
    exp.add_argument("--output-dir", "-o", type=Path, default=None, help="Output directory")
    exp.add_argument("--organization", default=None,
                     help="Tenant domain written into ConfigurationData (default: profile or tenant id)")

    prof_parser = subparsers.add_parser("profile", help="Manage tenant profiles")
    prof_sub = prof_parser.add_subparsers(dest="profile_action", help="Profile actions")

    add_p = prof_sub.add_parser("add", help="Add or update a tenant profile")
    add_p.add_argument("profile_name", help="Short name for the profile (e.g. 'contoso-prod')")
    add_p.add_argument("--tenant-id", required=True, help="Entra tenant ID (GUID) or primary domain")
    add_p.add_argument("--client-id", required=True, help="App registration client ID (GUID)")
    add_p.add_argument("--auth-mode", choices=["certificate", "secret", "delegated"], default="certificate")
    add_p.add_argument("--cert-path", default="./base64.txt", help="Path to base64-encoded PFX")
    add_p.add_argument("--organization", help="Tenant domain written into exports")
    add_p.add_argument("--set-default", action="store_true", help="Set as default profile")

    prof_sub.add_parser("list", help="List all configured profiles")
    rm_p = prof_sub.add_parser("remove", help="Remove a profile")
    rm_p.add_argument("profile_name")
    sd_p = prof_sub.add_parser("set-default", help="Set the default profile")
    sd_p.add_argument("profile_name")

    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Configuration and connection
# ---------------------------------------------------------------------------

def build_config(args: argparse.Namespace) -> EngineConfig:
    """Build engine configuration from config file, profile and CLI flags."""
    if args.config and args.config.exists():
        config = EngineConfig.from_file(args.config)
    else:
        config = EngineConfig()

    profile = None
    if args.profile:
        profile = resolve_profile(args.profile)
        if not profile:
            print(f"\n❌ Profile '{args.profile}' not found. Use 'profile list' to see available profiles.")
            sys.exit(EXIT_USAGE)
    elif not args.config and not args.tenant_id:
        profile = resolve_profile()

    if profile:
        config.auth = profile.to_auth_config()
        config.export.organization = config.export.organization or profile.organization

    mode = "delegated" if args.delegated else "secret" if args.secret else config.auth.mode
    tenant_id = args.tenant_id or config.auth.tenant_id
    client_id = args.client_id or config.auth.client_id
    if not tenant_id or not client_id:
        print("\n❌ No tenant credentials found. Use one of:")
        print("   • --profile <name>             (from saved profiles)")
        print("   • --tenant-id X --client-id Y  (ad-hoc)")
        print("   • --config config.json         (JSON config file)")
        sys.exit(EXIT_USAGE)

    config.auth.mode = mode
    if mode == "certificate":
        existing = config.auth.certificate
        cert_path = str(args.cert_path) if args.cert_path else (
            existing.certificate_path if existing else "./base64.txt"
        )
        config.auth.certificate = CertificateAuth(
            tenant_id=tenant_id,
            client_id=client_id,
            certificate_path=cert_path,
            certificate_password=existing.certificate_password if existing else "",
        )
    elif mode == "secret":
        existing_secret = config.auth.secret
        config.auth.secret = ClientSecretAuth(
            tenant_id=tenant_id,
            client_id=client_id,
            client_secret=existing_secret.client_secret if existing_secret else "",
        )
    else:
        config.auth.delegated = DelegatedAuth(tenant_id=tenant_id, client_id=client_id)

    config.use_beta = config.use_beta or args.beta
    config.verbose = config.verbose or args.verbose
    return config


def connect(config: EngineConfig, allow_writes: bool = False, what_if: bool = False) -> ConnectionContext:
    """Authenticate and build the context every operation receives."""
    authenticator = Authenticator(config.auth)
    token = authenticator.acquire_token()
    guardian = SafetyGuardian(allow_writes=allow_writes and not what_if)
    return ConnectionContext(
        graph=GraphClient(access_token=token, guardian=guardian),
        events=EventSink(),
        tenant_id=config.auth.tenant_id,
        application_id=config.auth.client_id,
        certificate_thumbprint=authenticator.certificate_thumbprint,
        auth_mode=config.auth.mode,
        use_beta=config.use_beta,
        what_if=what_if,
    )


def _desired_entries(args: argparse.Namespace) -> list[tuple[str, dict[str, Any]]]:
    """Desired state from --desired file, or from the resource name and -P pairs."""
    if args.desired:
        entries = load_document(args.desired)
        if args.resource:
            entries = [(r, p) for r, p in entries if r.lower() == args.resource.lower()]
        return entries
    if not args.resource:
        raise ValidationError("Give a resource name with -P parameters, or --desired <file>")
    return [(args.resource, dict(args.params))]


def _print_state(resource_name: str, params: dict[str, Any]) -> None:
    print(f"\n  {resource_name}")
    for name, value in params.items():
        print(f"    {name:<36s} {value}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def _cmd_resources() -> int:
    for cls in ALL_RESOURCES:
        d = cls.descriptor
        variant = f" [{d.discriminator}]" if d.discriminator else ""
        print(f"  {d.name:<46s} {d.collection}{variant}")
    print("\n  Graph application permissions (read-only / read-write):")
    read = Authenticator.list_required_permissions(read_only=True)
    write = Authenticator.list_required_permissions()
    for ro, rw in zip(read, write):
        print(f"    {ro:<44s} {rw}")
    return EXIT_OK


def run_operation(command: str, entries: list[tuple[str, dict[str, Any]]], context: ConnectionContext) -> int:
    """Run get/test/set over desired entries. Returns the process exit code."""
    exit_code = EXIT_OK
    for resource_name, params in entries:
        resource = get_resource(resource_name)
        if resource is None:
            print(f"  ❌ Unknown resource: {resource_name}")
            return EXIT_USAGE
        desired = resource.desired(params)

        if command == "get":
            state = resource.get(desired, context)
            _print_state(resource.name, resource.descriptor.to_parameters(state))
        elif command == "test":
            report = resource.check(desired, context)
            if report.passed:
                print(f"  ✅ {resource.name} {desired.natural_key}: in desired state")
            else:
                status = "current state unknown" if report.read_failed else "drift"
                print(f"  ⚠  {resource.name} {desired.natural_key}: {status}")
                for d in report.drifts:
                    print(f"      {d.field}: desired={d.to_dict()['desired']!r} current={d.to_dict()['current']!r}")
                exit_code = EXIT_DRIFT
        elif command == "set":
            transition = resource.set(desired, context)
            prefix = "What-if: " if context.what_if else ""
            print(f"  {prefix}{resource.name} {desired.natural_key}: {transition.value}")
    return exit_code


def _cmd_export(args: argparse.Namespace, config: EngineConfig, context: ConnectionContext) -> int:
    names = args.resources or config.export.resources
    if names:
        resources = []
        for name in names:
            resource = get_resource(name)
            if resource is None:
                print(f"  ❌ Unknown resource: {name}")
                return EXIT_USAGE
            resources.append(resource)
    else:
        resources = [cls() for cls in ALL_RESOURCES]

    if args.format:
        config.export.format = args.format
    if args.output_dir:
        config.export.output_dir = str(args.output_dir)
    if args.organization:
        config.export.organization = args.organization
    organization = config.export.organization or context.tenant_id

    if config.export.format == "json":
        formatter = JsonFormatter(
            tenant_id=context.tenant_id,
            organization=organization,
            application_id=context.application_id,
            certificate_thumbprint=context.certificate_thumbprint,
        )
    else:
        formatter = DscBlockFormatter(
            auth_mode=context.auth_mode,
            configuration_name=config.export.configuration_name,
            organization=organization,
            application_id=context.application_id,
            certificate_thumbprint=context.certificate_thumbprint,
        )

    print(f"\n  Exporting {len(resources)} resource type(s)...\n")
    document = export_tenant(resources, context, formatter)
    path = write_document(document, config.export.output_path, config.export.filename())
    written = [path]
    if isinstance(formatter, DscBlockFormatter):
        written.append(write_document(
            formatter.configuration_data(), config.export.output_path, CONFIGURATION_DATA_FILE
        ))

    for event in context.events.warnings():
        print(f"  ⚠  {event['message']}")
    print()
    for p in written:
        print(f"  📄 {p}")
    return EXIT_OK


def audit_record(context: ConnectionContext) -> dict:
    """Request guard and event sink audit for one run."""
    record: dict[str, Any] = {"tenant_id": context.tenant_id, "what_if": context.what_if}
    if isinstance(context.graph, GraphClient):
        record.update(context.graph.guardian.get_audit_record())
        record["graph"] = context.graph.get_stats()
    record.update(context.events.get_audit_record())
    return record


def _print_summary(record: dict) -> None:
    guardian = record.get("safety_guardian")
    events = record["events"]
    if guardian:
        print(f"\n  Mode: {guardian['mode']}  Mutations: {len(guardian['mutations'])}  "
              f"Blocked: {guardian['violations_detected']}")
    if events["errors"]:
        print(f"\n  {events['errors']} error(s) reported:")
        for event in events["items"]:
            if event["level"] == "error":
                print(f"    ❌ {event['message']}")


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)

    if args.command == "profile":
        return _cmd_profile(args)
    if args.command == "resources":
        return _cmd_resources()

    config = build_config(args)
    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    try:
        entries = _desired_entries(args) if args.command != "export" else []
        for resource_name, params in entries:
            resource = get_resource(resource_name)
            if resource is not None:
                resource.desired(params)
    except (ValidationError, OSError, json.JSONDecodeError, KeyError) as e:
        print(f"❌ Invalid desired state: {e}")
        return EXIT_USAGE

    what_if = getattr(args, "what_if", False)
    try:
        context = connect(config, allow_writes=args.command == "set", what_if=what_if)
    except AuthenticationError as e:
        print(f"❌ Authentication failed: {e}")
        return EXIT_USAGE

    try:
        if args.command == "export":
            code = _cmd_export(args, config, context)
        else:
            code = run_operation(args.command, entries, context)
    finally:
        if isinstance(context.graph, GraphClient):
            context.graph.close()

    record = audit_record(context)
    logger.debug(f"Graph requests: {record.get('graph', {}).get('total_requests', 0)}")
    _print_summary(record)
    if args.audit_log:
        args.audit_log.parent.mkdir(parents=True, exist_ok=True)
        args.audit_log.write_text(json.dumps(record, indent=2, default=str) + "\n", encoding="utf-8")
        print(f"  📝 Audit log: {args.audit_log}")
    return code


if __name__ == "__main__":
    sys.exit(main())
