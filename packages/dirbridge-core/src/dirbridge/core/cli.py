import argparse
import json
import sys

from dirbridge.core.connector import Connector
from dirbridge.core.exception import DirectoryError, SpecError
from dirbridge.core.observability import ensure_logging
from dirbridge.core.profiles import load_profiles
from dirbridge.core.query import (
    Conjunction,
    Criterion,
    ObjectType,
    Operator,
    QueryRequest,
    Sentence,
)
from dirbridge.core.registry.drivers import list_drivers
from dirbridge.core.plugins import load_all_plugins
from dirbridge.core.runtime.settings import load_settings


def _parse_where(raw: str) -> Criterion:
    """`attr=value` (EQUALS), `attr=*` (EXISTS), `attr~=value` (CONTAINS)."""
    if "~=" in raw:
        attr, _, value = raw.partition("~=")
        return Criterion(attr.strip(), value, Operator.CONTAINS)
    attr, sep, value = raw.partition("=")
    if not sep or not attr.strip():
        raise SpecError(f"--where must look like attr=value, got {raw!r}")
    if value == "*":
        return Criterion(attr.strip(), None, Operator.EXISTS)
    return Criterion(attr.strip(), value, Operator.EQUALS)


def _pick_profiles(args, settings):
    path = args.profiles_file or settings.profiles_file
    if not path:
        raise SpecError("No profiles file: pass --profiles-file or set DIRBRIDGE_PROFILES_FILE")
    profiles = load_profiles(path, settings=settings)
    names = args.profile or []
    missing = [n for n in names if n not in profiles]
    if missing:
        raise SpecError(f"Unknown profile(s) {missing}. Available: {sorted(profiles)}")
    return profiles, names


def _entity_dict(entity) -> dict:
    return {"dn": entity.dn, "endpoint": entity.endpoint_host, "attributes": entity.attributes}


def _print_entities(entities, as_json: bool) -> int:
    n = 0
    for e in entities:
        n += 1
        if as_json:
            print(json.dumps(_entity_dict(e), ensure_ascii=False, default=str))
        else:
            print(e.dn)
            for k, vals in e.attributes.items():
                for v in vals:
                    print(f"  {k}: {v}")
    return n


def _cmd_profiles(args, settings) -> int:
    profiles, _ = _pick_profiles(args, settings)
    rows = [
        {
            "name": p.name,
            "host": p.endpoint.host,
            "port": p.endpoint.port,
            "secured": p.endpoint.secured,
            "secondary_host": p.endpoint.secondary_host,
            "directory_type": p.directory_type.value,
        }
        for p in profiles.values()
    ]
    if args.json:
        print(json.dumps(rows, ensure_ascii=False))
    else:
        for r in rows:
            sec = " ssl" if r["secured"] else ""
            print(f"{r['name']}: {r['host']}:{r['port']}{sec} ({r['directory_type']})")
    return 0


def _query_from(args, profiles, names) -> QueryRequest:
    first = profiles[names[0]]
    sentence = None
    if args.where:
        sentence = Sentence(
            [_parse_where(w) for w in args.where],
            Conjunction.OR if args.any else Conjunction.AND,
        )
    return QueryRequest(
        endpoints=[profiles[n].endpoint for n in names],
        directory_type=first.directory_type,
        object_type=ObjectType(args.object_type),
        fields=list(args.field or []),
        search_sentence=sentence,
        search_paths=list(args.search_path or []),
        size_limit=args.size_limit,
        page_chunk_size=args.page_size,
        ignore_ssl_validations=True if args.ignore_ssl else None,
    )


def _cmd_test_connection(args, settings) -> int:
    profiles, names = _pick_profiles(args, settings)
    query = QueryRequest(endpoints=[profiles[n].endpoint for n in names],
                         ignore_ssl_validations=True if args.ignore_ssl else None)
    with Connector(query, settings=settings) as c:
        results = c.test_connections()
    if args.json:
        print(json.dumps([r.as_dict() for r in results], ensure_ascii=False))
    else:
        for name, r in zip(names, results):
            if r.success:
                print(f"OK: {name} {r.host}:{r.port} ({r.duration_ms} ms)")
            else:
                print(f"FAIL: {name} {r.host}:{r.port} {r.error_kind} - {r.message}")
    return 0 if all(r.success for r in results) else 2


def _cmd_query(args, settings) -> int:
    profiles, names = _pick_profiles(args, settings)
    query = _query_from(args, profiles, names)
    with Connector(query, settings=settings) as c:
        if query.is_paged:
            n = 0
            for page in c.get_cursor():
                n += _print_entities(page.entities, args.json)
            errors = {}
        else:
            response = c.execute()
            n = _print_entities(response.entities, args.json)
            errors = response.errors
    for addr, msg in errors.items():
        print(f"! {addr}: {msg}", file=sys.stderr)
    if not args.json:
        print(f"{n} entr{'y' if n == 1 else 'ies'}", file=sys.stderr)
    return 0


def _cmd_drivers(args, settings) -> int:
    load_all_plugins(settings=settings)
    drivers = list_drivers()
    if args.json:
        print(json.dumps(drivers))
    else:
        for d in drivers:
            mark = " (active)" if d == settings.driver else ""
            print(f"{d}{mark}")
    return 0


def main(argv=None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = argparse.ArgumentParser(prog="dirbridge", description="dirbridge directory connector CLI")
    sp = parser.add_subparsers(dest="cmd", required=True)

    def _profile_args(p, *, need_profile: bool):
        p.add_argument("--profiles-file", default=None, help="Path to profiles YAML (defaults to DIRBRIDGE_PROFILES_FILE)")
        if need_profile:
            p.add_argument("--profile", action="append", required=True,
                           help="Profile name; repeat to target several endpoints")
            p.add_argument("--ignore-ssl", action="store_true", help="Skip certificate validation for these endpoints")
        p.add_argument("--json", action="store_true", help="Output machine-readable JSON")

    profp = sp.add_parser("profiles", help="List endpoint profiles (passwords are never printed)")
    _profile_args(profp, need_profile=False)

    testp = sp.add_parser("test-connection", help="Bind to every selected endpoint and report the outcome")
    _profile_args(testp, need_profile=True)

    queryp = sp.add_parser("query", help="Search the selected endpoints")
    _profile_args(queryp, need_profile=True)
    queryp.add_argument("--object-type", default="ANY", choices=[o.value for o in ObjectType])
    queryp.add_argument("--field", action="append", help="Attribute to return; repeatable (default: all)")
    queryp.add_argument("--where", action="append", help="attr=value, attr=* or attr~=value; repeatable")
    queryp.add_argument("--any", action="store_true", help="OR the --where clauses instead of AND")
    queryp.add_argument("--search-path", action="append", help="Search base DN; repeatable")
    queryp.add_argument("--size-limit", type=int, default=1000)
    queryp.add_argument("--page-size", type=int, default=0, help="Page through results in chunks of this size")

    drvp = sp.add_parser("drivers", help="List registered execution engines")
    drvp.add_argument("--json", action="store_true", help="Output machine-readable JSON")

    args = parser.parse_args(argv)
    settings = load_settings()
    ensure_logging(settings)

    handlers = {
        "profiles": _cmd_profiles,
        "test-connection": _cmd_test_connection,
        "query": _cmd_query,
        "drivers": _cmd_drivers,
    }
    try:
        return handlers[args.cmd](args, settings)
    except (DirectoryError, SpecError, FileNotFoundError) as e:
        print(f"ERROR: {type(e).__name__}: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
