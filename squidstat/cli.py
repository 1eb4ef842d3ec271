"""squidstat CLI."""
from __future__ import annotations

import argparse
import json
import re
from typing import Dict, List

from .client import CacheObjectClient
from .config import ClientConfig
from .core.decode import FORMATS
from .core.errors import SquidstatError
from .telemetry.logging import configure, get_logger
from .telemetry.metrics_server import MetricsServer
from .telemetry.prom import SquidCollector, build_registry
from .utils.env import env_bool, env_float, env_int, env_str

_LABEL_NAME = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _parse_listen(value: str) -> tuple[str, int]:
    host, sep, port_s = value.rpartition(":")
    if not sep:
        raise argparse.ArgumentTypeError(f"listen address must be host:port, got {value!r}")
    try:
        port = int(port_s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port in listen address {value!r}") from None
    return host.strip("[]") or "0.0.0.0", port


def _parse_labels(pairs: List[str] | None) -> Dict[str, str]:
    labels: Dict[str, str] = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        name = name.strip()
        if not sep or not _LABEL_NAME.match(name):
            raise argparse.ArgumentTypeError(f"invalid label {pair!r}; expected name=value")
        labels[name] = value
    return labels


def client_config(args: argparse.Namespace) -> ClientConfig:
    return ClientConfig.from_credentials(
        hostname=args.squid_hostname,
        port=args.squid_port,
        login=args.squid_login,
        password=args.squid_password,
        proxy_header_enabled=args.squid_use_proxy_header,
        timeout=args.timeout,
    )


def _cmd_serve(args: argparse.Namespace) -> int:
    configure(args.log_level)
    log = get_logger("cli")
    try:
        host, port = _parse_listen(args.listen)
        labels = _parse_labels(args.label)
    except argparse.ArgumentTypeError as e:
        log.error(str(e))
        return 2
    cfg = client_config(args)
    collector = SquidCollector(
        CacheObjectClient(cfg),
        extract_service_times=args.extract_service_times,
        labels=labels,
    )
    log.info(
        f"scraping squid at {cfg.hostname}:{cfg.port} "
        f"(proxy_header={cfg.proxy_header_enabled}, service_times={args.extract_service_times})"
    )
    srv = MetricsServer(build_registry(collector), host=host, port=port, metrics_path=args.metrics_path)
    srv.serve_forever()
    return 0


def _cmd_fetch(args: argparse.Namespace) -> int:
    configure(args.log_level)
    client = CacheObjectClient(client_config(args))
    try:
        result = client.fetch(args.report)
    except SquidstatError as e:
        get_logger("cli").error(str(e))
        return 1
    out = {
        "report": result.report,
        "records": [{"key": r.key, "value": r.value} for r in result],
        "skipped": len(result.skipped),
    }
    if result.stream_error is not None:
        out["stream_error"] = repr(result.stream_error)
    print(json.dumps(out, indent=2))
    return 0


def _add_squid_args(sp: argparse.ArgumentParser) -> None:
    sp.add_argument("--squid-hostname", default=env_str("SQUID_HOSTNAME", "localhost"), help="Squid hostname (SQUID_HOSTNAME)")
    sp.add_argument("--squid-port", type=int, default=env_int("SQUID_PORT", 3128, minimum=1), help="Squid port (SQUID_PORT)")
    sp.add_argument("--squid-login", default=env_str("SQUID_LOGIN"), help="Cache manager login (SQUID_LOGIN)")
    sp.add_argument("--squid-password", default=env_str("SQUID_PASSWORD"), help="Cache manager password (SQUID_PASSWORD)")
    sp.add_argument(
        "--squid-use-proxy-header",
        action=argparse.BooleanOptionalAction,
        default=env_bool("SQUID_USE_PROXY_HEADER", False),
        help="Send a PROXY v1 header before the request (SQUID_USE_PROXY_HEADER)",
    )
    sp.add_argument(
        "--timeout",
        type=float,
        default=env_float("SQUID_TIMEOUT"),
        help="Socket timeout in seconds; unset blocks indefinitely (SQUID_TIMEOUT)",
    )
    sp.add_argument("--log-level", default=None, help="DEBUG|INFO|WARNING|ERROR (SQUIDSTAT_LOG_LEVEL)")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="squidstat", description="Squid cache manager metrics exporter")
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("serve", help="Run the Prometheus exporter")
    _add_squid_args(sp)
    sp.add_argument("--listen", default=env_str("SQUID_EXPORTER_LISTEN", "127.0.0.1:9301"), help="host:port to listen on (SQUID_EXPORTER_LISTEN)")
    sp.add_argument("--metrics-path", default=env_str("SQUID_EXPORTER_METRICS_PATH", "/metrics"), help="Metrics path (SQUID_EXPORTER_METRICS_PATH)")
    sp.add_argument(
        "--extract-service-times",
        action=argparse.BooleanOptionalAction,
        default=env_bool("SQUID_EXTRACTSERVICETIMES", True),
        help="Also export the service_times report (SQUID_EXTRACTSERVICETIMES)",
    )
    sp.add_argument("--label", action="append", default=None, help="Constant label name=value added to every metric (repeatable)")
    sp.set_defaults(func=_cmd_serve)

    sp = sub.add_parser("fetch", help="Fetch one report and print its records as JSON")
    _add_squid_args(sp)
    sp.add_argument("report", choices=sorted(FORMATS), help="Report name")
    sp.set_defaults(func=_cmd_fetch)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
