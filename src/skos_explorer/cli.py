#!/usr/bin/env python3
# PYTHON_ARGCOMPLETE_OK
"""
Command-line interface for SKOS Explorer endpoint analysis
"""
from __future__ import annotations

import argparse
import json
import logging
import re
import sys
import time
from concurrent.futures import wait
from pathlib import Path
from urllib.parse import urlparse

import argcomplete

from . import probe
from ._version import __version__
from .analysis import EndpointAnalyzer
from .config import Config
from .errors import AnalysisAborted
from .languages import reorder
from .models import AUTH_TYPES, Endpoint, EndpointAnalysis, EndpointAuth, GraphSupport, LogStatus
from .sparql import SPARQLClient
from .store import EndpointStore

STATUS_SYMBOLS = {
    LogStatus.PENDING: "⏳",
    LogStatus.SUCCESS: "✅",
    LogStatus.WARNING: "⚠️ ",
    LogStatus.ERROR: "❌",
    LogStatus.INFO: "ℹ️ ",
}


def setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def make_client(config: Config) -> SPARQLClient:
    return SPARQLClient(
        timeout=config.sparql_timeout,
        max_retries=config.max_retries,
        retry_delay=config.retry_delay,
        origin=config.origin,
    )


def endpoint_id_for(url: str, existing: set[str] | None = None) -> str:
    """Derive a readable, unique endpoint id from a URL, e.g. "vocab-example-org-sparql"."""
    parsed = urlparse(url)
    base = re.sub(r"[^a-z0-9]+", "-", f"{parsed.netloc}{parsed.path}".lower()).strip("-") or "endpoint"
    existing = existing or set()
    candidate = base
    n = 2
    while candidate in existing:
        candidate = f"{base}-{n}"
        n += 1
    return candidate


def auth_from_args(args) -> EndpointAuth | None:
    """Build endpoint auth from command-line options, or None if not given."""
    auth_type = getattr(args, "auth", None)
    if not auth_type:
        return None
    return EndpointAuth(
        type=auth_type,
        username=getattr(args, "username", None),
        password=getattr(args, "password", None),
        api_key=getattr(args, "api_key", None),
        token=getattr(args, "token", None),
        header_name=getattr(args, "header_name", None) or "X-API-Key",
    )


def resolve_target(store: EndpointStore, target: str, auth: EndpointAuth | None = None) -> Endpoint | None:
    """Find a stored endpoint by id, name or URL; a bare URL gives an ad-hoc endpoint.

    Auth given on the command line replaces the stored auth.
    """
    endpoint = store.find_endpoint(target)
    if endpoint is None:
        if not target.startswith(("http://", "https://")):
            return None
        endpoint = Endpoint(id=endpoint_id_for(target), url=target)
    if auth is not None:
        endpoint = Endpoint(id=endpoint.id, url=endpoint.url, name=endpoint.name, auth=auth)
    return endpoint


def config_command(show: bool = False, show_path: bool = False) -> int:
    """Show configuration information."""
    config = Config()

    if show_path:
        if config.path:
            print(config.path)
        else:
            print("No configuration file found")
        return 0

    if config.path:
        print(f"# Configuration loaded from: {config.path}")
    else:
        print("# No configuration file found, showing defaults")
    print()
    print(json.dumps(config.data, indent=2))
    return 0


def endpoints_list(store: EndpointStore) -> int:
    endpoints = store.list_endpoints()
    if not endpoints:
        print("No endpoints configured. Add one with: skos-explorer endpoints add URL")
        return 0
    for endpoint in endpoints:
        analysis = store.get_analysis(endpoint.id)
        status = "not analyzed" if analysis is None else f"analyzed {analysis.analyzed_at:%Y-%m-%d %H:%M}"
        auth = f" [{endpoint.auth.type}]" if endpoint.auth and endpoint.auth.type != "none" else ""
        print(f"{endpoint.id:30} {endpoint.url}{auth}")
        if endpoint.name:
            print(f"{'':30} {endpoint.name}")
        print(f"{'':30} {status}")
    return 0


def endpoints_add(
    store: EndpointStore, url: str, name: str | None = None, endpoint_id: str | None = None,
    auth: EndpointAuth | None = None,
) -> int:
    if not url.startswith(("http://", "https://")):
        print(f"Error: not an HTTP(S) URL: {url}", file=sys.stderr)
        return 1
    existing = {endpoint.id for endpoint in store.list_endpoints()}
    if endpoint_id and endpoint_id in existing:
        print(f"Error: endpoint id already in use: {endpoint_id}", file=sys.stderr)
        return 1
    endpoint = Endpoint(id=endpoint_id or endpoint_id_for(url, existing), url=url, name=name, auth=auth)
    store.save_endpoint(endpoint)
    print(f"✅ Added endpoint {endpoint.id}: {endpoint.url}")
    return 0


def endpoints_remove(store: EndpointStore, endpoint_id: str) -> int:
    if not store.remove_endpoint(endpoint_id):
        print(f"Error: unknown endpoint: {endpoint_id}", file=sys.stderr)
        return 1
    print(f"✅ Removed endpoint {endpoint_id}")
    return 0


def connection_command(config: Config, store: EndpointStore, target: str, auth: EndpointAuth | None = None) -> int:
    """Run the connection test against one endpoint."""
    endpoint = resolve_target(store, target, auth)
    if endpoint is None:
        print(f"Error: unknown endpoint: {target}", file=sys.stderr)
        return 1

    client = make_client(config)
    try:
        result = probe.test_connection(client, endpoint, timeout=config.connect_timeout)
    finally:
        client.close()

    if result.success:
        print(f"✅ {endpoint.label}: {result.message}")
        return 0
    print(f"❌ {endpoint.label}: {result.message} [{result.error.code.value}]", file=sys.stderr)
    if result.error.details:
        print(f"   {result.error.details}", file=sys.stderr)
    return 1


def print_log(entries) -> None:
    for entry in entries:
        print(f"{STATUS_SYMBOLS[entry.status]} {entry.message}")


def print_analysis(analysis: EndpointAnalysis) -> None:
    support = analysis.supports_named_graphs
    if support is GraphSupport.SUPPORTED:
        count = f"{analysis.graph_count}{'' if analysis.graph_count_exact else '+'}"
        graphs = f"yes, {count} graphs ({analysis.query_method.value})"
    elif support is GraphSupport.UNSUPPORTED:
        graphs = "no"
    else:
        graphs = "unknown"
    duplicates = {True: "yes", False: "no", None: "unknown"}[analysis.has_duplicate_triples]

    print()
    print(f"Named graphs:      {graphs}")
    print(f"Duplicate triples: {duplicates}")
    if analysis.skos_graph_count is not None:
        print(f"SKOS graphs:       {analysis.skos_graph_count}")
    if analysis.total_concepts is not None:
        print(f"Concepts:          {analysis.total_concepts:,}")
    if analysis.scheme_count is not None:
        limited = " (list truncated)" if analysis.schemes_limited else ""
        print(f"Concept schemes:   {analysis.scheme_count:,}{limited}")
    if analysis.relationships is not None:
        present = [key for key, found in analysis.relationships.to_dict().items() if found]
        print(f"Relationships:     {', '.join(present) or 'none'}")
    if analysis.label_predicates:
        print("Label predicates:")
        for kind, label_types in analysis.label_predicates.items():
            print(f"  {kind:10} {', '.join(label_types)}")
    if analysis.languages:
        print("Languages:")
        for detected in analysis.languages:
            print(f"  {detected.lang:10} {detected.count:>10}")
    else:
        print("Languages:         none detected")


def follow_analysis(analyzer: EndpointAnalyzer, endpoint: Endpoint, poll_interval: float = 0.25):
    """Run an analysis in the background, printing finished steps as they complete."""
    future = analyzer.submit_analysis(endpoint)
    printed = 0
    while True:
        done, _ = wait([future], timeout=poll_interval)
        run = analyzer.current_run(endpoint.id)
        if run is not None:
            log = run.log
            # Print every entry that will not change any more
            final = len(log) if done else max(len(log) - 1, 0)
            if log and not done and log[-1].status is not LogStatus.PENDING:
                final = len(log)
            print_log(log[printed:final])
            printed = max(printed, final)
            elapsed = run.format_elapsed()
            if elapsed and not done and sys.stderr.isatty():
                print(f"\r   ... {elapsed}", end="", file=sys.stderr, flush=True)
        if done:
            if sys.stderr.isatty():
                print("\r", end="", file=sys.stderr)
            return future.result()


def analyze_command(
    config: Config,
    store: EndpointStore,
    target: str | None,
    as_json: bool = False,
    dump_file: Path | None = None,
    auth: EndpointAuth | None = None,
) -> int:
    """Analyze an endpoint, or a local RDF dump with ``dump_file``."""
    if dump_file is not None:
        from .local import LocalStoreClient

        try:
            client = LocalStoreClient.from_files([dump_file])
        except ImportError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except (OSError, SyntaxError, ValueError) as e:
            print(f"Error: could not load {dump_file}: {e}", file=sys.stderr)
            return 1
        endpoint = client.endpoint()
    else:
        if not target:
            print("Error: endpoint or --file required", file=sys.stderr)
            return 1
        endpoint = resolve_target(store, target, auth)
        if endpoint is None:
            print(f"Error: unknown endpoint: {target}", file=sys.stderr)
            return 1
        client = make_client(config)

    if not as_json:
        print(f"Analyzing {endpoint.label}")
    start = time.monotonic()
    with EndpointAnalyzer.from_config(config, client, store) as analyzer:
        try:
            if as_json:
                run = analyzer.run_analysis(endpoint)
            else:
                run = follow_analysis(analyzer, endpoint)
        except AnalysisAborted as e:
            if as_json:
                print(json.dumps({"error": e.error.to_dict(), "log": [x.to_dict() for x in e.run.log]}, indent=2))
            else:
                print(f"\nAnalysis failed: {e.error.message}", file=sys.stderr)
            return 1
        finally:
            if isinstance(client, SPARQLClient):
                client.close()

    if as_json:
        print(json.dumps({
            "endpoint": endpoint.to_dict(),
            "analysis": run.analysis.to_dict(),
            "log": [entry.to_dict() for entry in run.log],
        }, indent=2))
        return 0

    print_analysis(run.analysis)
    print(f"\nCompleted in {time.monotonic() - start:.1f}s")
    return 0


def languages_command(
    store: EndpointStore,
    endpoint_id: str,
    set_languages: list[str] | None = None,
    override: str | None = None,
    clear_override: bool = False,
) -> int:
    """Show or edit the language priority list of an endpoint."""
    endpoint = store.find_endpoint(endpoint_id)
    if endpoint is None:
        print(f"Error: unknown endpoint: {endpoint_id}", file=sys.stderr)
        return 1

    priorities = store.get_priorities(endpoint.id)
    changed = priorities
    if set_languages:
        changed = reorder(changed, set_languages)
    if override:
        changed = changed.with_override(override)
    elif clear_override:
        changed = changed.with_override(None)
    if changed != priorities:
        store.save_priorities(endpoint.id, changed)
        priorities = changed

    if not priorities.languages:
        print(f"No languages known for {endpoint.label}. Run: skos-explorer analyze {endpoint.id}")
        return 0

    analysis = store.get_analysis(endpoint.id)
    print(f"Language priorities for {endpoint.label}:")
    for position, lang in enumerate(priorities.languages, start=1):
        count = analysis.language_count(lang) if analysis else None
        count_text = f"{count} labels" if count is not None else "not detected"
        print(f"  {position:>2}. {lang:10} {count_text}")
    if priorities.current_override:
        print(f"Override: {priorities.current_override}")
    return 0


def _add_auth_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group('authentication')
    group.add_argument('--auth', choices=AUTH_TYPES, help='Authentication type')
    group.add_argument('--username', '-u', type=str, help='Username (basic auth)')
    group.add_argument('--password', '-p', type=str, help='Password (basic auth)')
    group.add_argument('--api-key', type=str, help='API key (apikey auth)')
    group.add_argument('--header-name', type=str, help='API key header (default: X-API-Key)')
    group.add_argument('--token', type=str, help='Bearer token (bearer auth)')


def main() -> int:
    """Main entry point for the CLI."""
    parser_cli = argparse.ArgumentParser(
        description="SKOS Explorer - Probe SPARQL endpoints for graph, duplicate and language capabilities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Register an endpoint
  skos-explorer endpoints add https://vocab.example.org/sparql --name "Example vocabularies"

  # Check that it answers
  skos-explorer test vocab-example-org-sparql

  # Run the full capability analysis
  skos-explorer analyze vocab-example-org-sparql

  # Analyze a local N-Quads dump (requires pyoxigraph)
  skos-explorer analyze --file vocabulary.nq

  # Put French first in the label language priorities
  skos-explorer languages vocab-example-org-sparql --set fr en de
        """
    )
    parser_cli.add_argument(
        '--version', '-V',
        action='version',
        version=f'%(prog)s {__version__}'
    )
    parser_cli.add_argument('--verbose', '-v', action='count', default=0, help='More logging (-vv for debug)')

    subparsers = parser_cli.add_subparsers(dest='command', help='Command to run')

    # Config command
    config_parser = subparsers.add_parser('config', help='Show configuration')
    config_parser.add_argument('--show', action='store_true', help='Show merged configuration')
    config_parser.add_argument('--path', action='store_true', help='Show config file path')

    # Endpoints command with subcommands
    endpoints_parser = subparsers.add_parser('endpoints', help='Manage stored endpoints')
    endpoints_subparsers = endpoints_parser.add_subparsers(dest='endpoints_command', help='Endpoints subcommand')

    endpoints_subparsers.add_parser('list', help='List stored endpoints')

    endpoints_add_parser = endpoints_subparsers.add_parser('add', help='Add an endpoint')
    endpoints_add_parser.add_argument('url', help='SPARQL endpoint URL')
    endpoints_add_parser.add_argument('--name', '-n', type=str, help='Display name')
    endpoints_add_parser.add_argument('--id', type=str, dest='endpoint_id', help='Endpoint id (default: derived from URL)')
    _add_auth_arguments(endpoints_add_parser)

    endpoints_remove_parser = endpoints_subparsers.add_parser('remove', help='Remove an endpoint')
    endpoints_remove_parser.add_argument('endpoint_id', help='Endpoint id')

    # Test command
    test_parser = subparsers.add_parser('test', help='Test the connection to an endpoint')
    test_parser.add_argument('target', help='Endpoint id, name or URL')
    _add_auth_arguments(test_parser)

    # Analyze command
    analyze_parser = subparsers.add_parser(
        'analyze',
        help='Analyze named graphs, duplicate triples and label languages',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Steps:
  (1/4) connection test
  (2/4) named graph support and graph count
  (3/4) duplicate triples across graphs (only with 2+ graphs)
  (4/4) language census on skos:prefLabel / skosxl:prefLabel

The result is stored with the endpoint and newly detected languages are
appended to its language priority list.
        """,
    )
    analyze_parser.add_argument('target', nargs='?', help='Endpoint id, name or URL')
    analyze_parser.add_argument('--json', '-j', action='store_true', help='Output as JSON')
    analyze_parser.add_argument('--file', '-f', type=Path, dest='dump_file',
                                help='Analyze a local RDF dump instead of an endpoint')
    _add_auth_arguments(analyze_parser)

    # Languages command
    languages_parser = subparsers.add_parser('languages', help='Show or edit label language priorities')
    languages_parser.add_argument('endpoint_id', help='Endpoint id, name or URL')
    languages_parser.add_argument('--set', nargs='+', metavar='LANG', dest='set_languages',
                                  help='New priority order')
    override_group = languages_parser.add_mutually_exclusive_group()
    override_group.add_argument('--override', type=str, metavar='LANG', help='Temporarily prefer this language')
    override_group.add_argument('--clear-override', action='store_true', help='Remove the override')

    # Enable shell tab completion
    argcomplete.autocomplete(parser_cli)

    args = parser_cli.parse_args()
    setup_logging(args.verbose)

    if args.command == 'config':
        return config_command(
            show=getattr(args, 'show', False),
            show_path=getattr(args, 'path', False)
        )

    if args.command is None:
        parser_cli.print_help()
        return 1

    config = Config()
    store = EndpointStore(config.store_path)

    if args.command == 'endpoints':
        if args.endpoints_command == 'list':
            return endpoints_list(store)
        elif args.endpoints_command == 'add':
            return endpoints_add(store, args.url, args.name, args.endpoint_id, auth_from_args(args))
        elif args.endpoints_command == 'remove':
            return endpoints_remove(store, args.endpoint_id)
        else:
            endpoints_parser.print_help()
            return 1
    elif args.command == 'test':
        return connection_command(config, store, args.target, auth_from_args(args))
    elif args.command == 'analyze':
        return analyze_command(config, store, args.target, args.json, args.dump_file, auth_from_args(args))
    elif args.command == 'languages':
        return languages_command(
            store, args.endpoint_id, args.set_languages, args.override, args.clear_override
        )
    else:
        parser_cli.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
