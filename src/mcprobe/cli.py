"""CLI entry point: ``mcprobe <command> [server]``."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from typing import TYPE_CHECKING, Any

from mcprobe.bedrock import BedrockStatus, status_bedrock
from mcprobe.config import AppConfig, ServerConfig, load_config
from mcprobe.connection import parse_address
from mcprobe.credentials import (
    RCON_PASSWORD,
    VOTIFIER_TOKEN,
    CredentialError,
    resolve_secret,
)
from mcprobe.errors import McProbeError
from mcprobe.favicon import Favicon
from mcprobe.formatting import Motd, format_response
from mcprobe.java import JavaStatus, status
from mcprobe.legacy import LegacyJavaStatus, status_legacy
from mcprobe.query import BasicQueryResponse, FullQueryResponse, basic_query, full_query
from mcprobe.rcon import RconSession
from mcprobe.repl import run_console
from mcprobe.vote import send_vote

if TYPE_CHECKING:
    from collections.abc import Callable

    from mcprobe.srv import SrvRecord

log = logging.getLogger(__name__)

_UNSET_PORT = -1


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "server",
        nargs="?",
        help="Server name (from config) or host[:port] (e.g., mc.example.com:25565)",
    )
    common.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Deadline in seconds for the whole exchange (default: from config, 5)",
    )
    common.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print the result as JSON",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Strip formatting codes instead of converting to ANSI colors",
    )

    srv = argparse.ArgumentParser(add_help=False)
    srv.add_argument(
        "--no-srv",
        action="store_true",
        default=False,
        help="Do not follow _minecraft._tcp SRV records",
    )

    parser = argparse.ArgumentParser(
        prog="mcprobe",
        description="Query Minecraft servers: status, query, RCON and votes",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug logging",
    )
    commands = parser.add_subparsers(dest="command_name", required=True)

    cmd = commands.add_parser(
        "status", parents=[common, srv], help="Java Edition server list ping"
    )
    cmd.add_argument(
        "--favicon",
        metavar="PATH",
        help="Save the server icon as a PNG file",
    )
    cmd.set_defaults(func=cmd_status)

    cmd = commands.add_parser(
        "legacy", parents=[common, srv], help="Legacy (pre-1.7) server list ping"
    )
    cmd.set_defaults(func=cmd_legacy)

    cmd = commands.add_parser(
        "bedrock", parents=[common, srv], help="Bedrock Edition unconnected ping"
    )
    cmd.set_defaults(func=cmd_bedrock)

    cmd = commands.add_parser("query", parents=[common], help="UDP query")
    cmd.add_argument(
        "--full",
        action="store_true",
        default=False,
        help="Request the full stat (plugins, player names)",
    )
    cmd.set_defaults(func=cmd_query)

    cmd = commands.add_parser("vote", parents=[common], help="Send a Votifier v2 vote")
    cmd.add_argument("--username", required=True, help="Player who voted")
    cmd.add_argument(
        "--token",
        help="Votifier token (overrides 1Password lookup)",
    )
    cmd.add_argument(
        "--service",
        help="Service name the token belongs to (default: from config)",
    )
    cmd.add_argument("--uuid", help="Player UUID")
    cmd.set_defaults(func=cmd_vote)

    cmd = commands.add_parser("rcon", parents=[common], help="Remote console")
    cmd.add_argument(
        "-p",
        "--password",
        help="RCON password (overrides 1Password lookup)",
    )
    cmd.add_argument(
        "-c",
        "--command",
        help="Execute a single command and exit (non-interactive mode)",
    )
    cmd.set_defaults(func=cmd_rcon)

    return parser


def select_server(config: AppConfig) -> tuple[str, ServerConfig]:
    """Prompt the user to select from configured servers.

    Returns (key, ServerConfig).
    """
    servers = list(config.servers.items())
    if not servers:
        print("No servers configured.", file=sys.stderr)
        sys.exit(1)

    print("Available servers:")
    for i, (_key, srv) in enumerate(servers, 1):
        print(f"  {i}. {srv.name} ({srv.host})")

    while True:
        try:
            choice = input(f"\nSelect server [1-{len(servers)}]: ").strip()
            idx = int(choice) - 1
            if 0 <= idx < len(servers):
                return servers[idx]
        except ValueError:
            pass
        except EOFError:
            print(file=sys.stderr)
            sys.exit(1)
        print(f"Please enter a number between 1 and {len(servers)}")


def resolve_server(
    server_arg: str | None, config: AppConfig
) -> tuple[str, ServerConfig, int | None]:
    """Resolve the target server from the CLI argument or interactive selection.

    Returns (display_name, ServerConfig, explicit_port). ``explicit_port`` is
    set only when the argument is an address with a port, and then overrides
    whichever port the command would otherwise use.
    """
    if server_arg is not None:
        if server_arg in config.servers:
            return server_arg, config.servers[server_arg], None

        host, port = parse_address(server_arg, _UNSET_PORT)
        explicit = None if port == _UNSET_PORT else port
        return server_arg, ServerConfig(name=server_arg, host=host), explicit

    if config.default_server and config.default_server in config.servers:
        key = config.default_server
        return key, config.servers[key], None

    key, server = select_server(config)
    return key, server, None


def _endpoint(
    args: argparse.Namespace, config: AppConfig, port_field: str
) -> tuple[str, ServerConfig, str, int]:
    """Return (display_name, server, host, port) for a command."""
    name, server, explicit_port = resolve_server(args.server, config)
    port = explicit_port if explicit_port is not None else getattr(server, port_field)
    return name, server, server.host, port


def resolve_password(
    password_arg: str | None, server: ServerConfig, config: AppConfig
) -> str:
    """Resolve the RCON password from the flag, per-server, or default credentials."""
    return resolve_secret(
        password_arg,
        server.resolve_credentials(config.default_credentials),
        RCON_PASSWORD,
    )


def resolve_token(
    token_arg: str | None, server: ServerConfig, config: AppConfig
) -> str:
    """Resolve the Votifier token from the flag, per-server, or vote defaults."""
    return resolve_secret(
        token_arg,
        server.vote_credentials or config.vote.credentials,
        VOTIFIER_TOKEN,
    )


def to_jsonable(value: Any) -> Any:
    """Convert result dataclasses into JSON-serializable values."""
    if isinstance(value, Motd):
        return value.to_plain()
    if isinstance(value, Favicon):
        return value.raw
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_jsonable(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    return value


def _print_json(result: Any) -> None:
    print(json.dumps(to_jsonable(result), indent=2, ensure_ascii=False))


def _motd(motd: Motd, *, color: bool) -> str:
    return motd.to_ansi() if color else motd.to_plain()


def _srv_line(record: SrvRecord | None) -> str | None:
    if record is None:
        return None
    return f"SRV:      {record.host}:{record.port}"


def format_java_status(result: JavaStatus, *, color: bool = True) -> list[str]:
    lines = [
        f"Version:  {result.version.name} (protocol {result.version.protocol})",
        f"Players:  {result.players.online}/{result.players.max}",
    ]
    lines.extend(f"  - {player.name}" for player in result.players.sample)
    lines.append(f"MOTD:     {_motd(result.motd, color=color)}")
    lines.append(f"Latency:  {result.latency:.1f} ms")
    if result.mod_info is not None:
        lines.append(f"Mods:     {result.mod_info.type} ({len(result.mod_info.mods)})")
    if srv := _srv_line(result.srv_record):
        lines.append(srv)
    return lines


def format_legacy_status(result: LegacyJavaStatus, *, color: bool = True) -> list[str]:
    lines = []
    if result.version is not None:
        lines.append(
            f"Version:  {result.version.name} (protocol {result.version.protocol})"
        )
    lines.append(f"Players:  {result.players.online}/{result.players.max}")
    lines.append(f"MOTD:     {_motd(result.motd, color=color)}")
    if srv := _srv_line(result.srv_record):
        lines.append(srv)
    return lines


def format_bedrock_status(result: BedrockStatus, *, color: bool = True) -> list[str]:
    def show(value: object) -> str:
        return "?" if value is None else str(value)

    lines = [
        f"Edition:  {result.edition}",
        f"Version:  {show(result.version)} (protocol {show(result.protocol_version)})",
        f"Players:  {show(result.online_players)}/{show(result.max_players)}",
        f"MOTD:     {_motd(result.motd, color=color)}",
    ]
    if result.gamemode is not None:
        lines.append(f"Gamemode: {result.gamemode}")
    if srv := _srv_line(result.srv_record):
        lines.append(srv)
    return lines


def format_basic_query(result: BasicQueryResponse, *, color: bool = True) -> list[str]:
    return [
        f"MOTD:     {_motd(result.motd, color=color)}",
        f"Game:     {result.game_type}",
        f"Map:      {result.map}",
        f"Players:  {result.online_players}/{result.max_players}",
        f"Host:     {result.host_ip}:{result.host_port}",
    ]


def format_full_query(result: FullQueryResponse, *, color: bool = True) -> list[str]:
    lines = [f"MOTD:     {_motd(result.motd, color=color)}"]
    lines.extend(
        f"{key}: {value}" for key, value in result.data.items() if key != "hostname"
    )
    lines.append(f"Players ({len(result.players)}):")
    lines.extend(f"  - {player}" for player in result.players)
    return lines


def _report(
    args: argparse.Namespace,
    result: Any,
    formatter: Callable[..., list[str]],
) -> None:
    if args.json:
        _print_json(result)
        return
    for line in formatter(result, color=not args.no_color):
        print(line)


def cmd_status(args: argparse.Namespace, config: AppConfig) -> None:
    _, _, host, port = _endpoint(args, config, "port")
    result = status(host, port, timeout=args.timeout, enable_srv=args.enable_srv)
    _report(args, result, format_java_status)
    if args.favicon:
        path = result.favicon.save(args.favicon)
        if not args.json:
            print(f"Favicon saved to {path}")


def cmd_legacy(args: argparse.Namespace, config: AppConfig) -> None:
    _, _, host, port = _endpoint(args, config, "port")
    result = status_legacy(
        host, port, timeout=args.timeout, enable_srv=args.enable_srv
    )
    _report(args, result, format_legacy_status)


def cmd_bedrock(args: argparse.Namespace, config: AppConfig) -> None:
    _, _, host, port = _endpoint(args, config, "bedrock_port")
    result = status_bedrock(
        host, port, timeout=args.timeout, enable_srv=args.enable_srv
    )
    _report(args, result, format_bedrock_status)


def cmd_query(args: argparse.Namespace, config: AppConfig) -> None:
    _, _, host, port = _endpoint(args, config, "effective_query_port")
    if args.full:
        _report(args, full_query(host, port, timeout=args.timeout), format_full_query)
    else:
        _report(
            args, basic_query(host, port, timeout=args.timeout), format_basic_query
        )


def cmd_vote(args: argparse.Namespace, config: AppConfig) -> None:
    name, server, host, port = _endpoint(args, config, "votifier_port")
    token = resolve_token(args.token, server, config)
    send_vote(
        host,
        port,
        service_name=args.service or config.vote.service_name,
        username=args.username,
        token=token,
        uuid=args.uuid,
        timeout=args.timeout,
    )
    if args.json:
        _print_json({"status": "ok", "username": args.username})
    else:
        print(f"Vote for {args.username} accepted by {name}")


def cmd_rcon(args: argparse.Namespace, config: AppConfig) -> None:
    name, server, host, port = _endpoint(args, config, "rcon_port")
    password = resolve_password(args.password, server, config)
    color = not args.no_color

    with RconSession() as session:
        session.dial(host, port, timeout=args.timeout)
        session.login(password)

        # Non-interactive mode: run single command and exit
        if args.command:
            session.run(args.command)
            response = session.recv(args.timeout)
            if args.json:
                _print_json({"command": args.command, "response": response})
            elif response:
                print(format_response(response, color=color))
            return

        print(f"Connected to {name} ({host}:{port})")
        print("Ctrl+D or 'exit' to quit.\n")
        run_console(session, color=color)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    if args.timeout is None:
        args.timeout = config.timeout
    args.enable_srv = config.enable_srv and not getattr(args, "no_srv", False)

    try:
        args.func(args, config)
    except (McProbeError, CredentialError, OSError, ValueError) as e:
        log.debug("%s failed", args.command_name, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
