"""gocd-yaml CLI: parse, check and export pipeline configuration."""

import argparse
import json
import logging
import sys
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path
from typing import Optional


def _print_errors(errors: dict) -> None:
    for label, entries in errors.items():
        for entry in entries:
            print(f"  [{entry['code']}] {label}: {entry['message']}")


def _report_collection(body: dict, out: Optional[Path], as_json: bool, quiet: bool) -> int:
    """Print or write a parsed collection. Returns the exit code."""
    from ._internal.canonical_json import canonical_dumps, pretty_dumps

    errors = body.get("errors", {})
    if out is not None:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(canonical_dumps(body) + "\n", encoding="utf-8")
    if as_json:
        print(pretty_dumps(body))
    elif not quiet:
        status = "OK" if not errors else "FAILED"
        print(f"[{status}] Parse complete")
        if "target-version" in body:
            print(f"  Format version: {body['target-version']}")
        print(f"  Pipelines: {len(body.get('pipelines', []))}")
        print(f"  Environments: {len(body.get('environments', []))}")
        print(f"  Templates: {len(body.get('templates', []))}")
        print(f"  Errors: {sum(len(entries) for entries in errors.values())}")
        _print_errors(errors)
        if out is not None:
            print(f"  Report: {out}")
    return 1 if errors else 0


def _fail(response) -> None:
    """Print a failed response to stderr and exit."""
    body = response.body or {}
    if "message" in body:
        print(f"Error: {body['message']}", file=sys.stderr)
    else:
        print("Unexpected error:", file=sys.stderr)
        for label, entries in body.get("errors", {}).items():
            for entry in entries:
                print(f"  {label}: {entry['message']}", file=sys.stderr)
    sys.exit(1)


def main():
    """Main CLI entry point for gocd-yaml commands."""
    try:
        package_version = get_version("gocd-yaml-config")
    except PackageNotFoundError:
        package_version = "dev"

    parser = argparse.ArgumentParser(
        prog="gocd-yaml",
        description="gocd-yaml: Parse, validate and export GoCD YAML pipeline configuration"
    )
    parser.add_argument("--version", action="version", version=f"gocd-yaml {package_version}")
    # Common arguments
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress all non-error output."
    )
    parent_parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for diagnostics on stderr (default: WARNING)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # parse command
    parse_parser = subparsers.add_parser(
        "parse",
        help="Parse every config file under a directory",
        parents=[parent_parser]
    )
    parse_parser.add_argument(
        "directory",
        type=Path,
        help="Config repository checkout"
    )
    parse_parser.add_argument(
        "--pattern",
        default=None,
        help="Comma separated file globs (default: **/*.gocd.yaml,**/*.gocd.yml)"
    )
    parse_parser.add_argument(
        "--default-format-version",
        type=int,
        default=None,
        help="Format version to assume when no file declares one"
    )
    parse_parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Write the collection as canonical JSON to this file"
    )
    parse_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the collection as JSON instead of a summary"
    )

    # parse-files command
    parse_files_parser = subparsers.add_parser(
        "parse-files",
        help="Parse the given files as one collection",
        parents=[parent_parser]
    )
    parse_files_parser.add_argument(
        "files",
        nargs="+",
        type=Path,
        help="YAML files to parse"
    )
    parse_files_parser.add_argument(
        "--default-format-version",
        type=int,
        default=None,
        help="Format version to assume when no file declares one"
    )
    parse_files_parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Write the collection as canonical JSON to this file"
    )
    parse_files_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the collection as JSON instead of a summary"
    )

    # export command
    export_parser = subparsers.add_parser(
        "export",
        help="Export a pipeline given as JSON to YAML",
        parents=[parent_parser]
    )
    export_parser.add_argument(
        "pipeline",
        type=Path,
        help="Path to a pipeline JSON document"
    )
    export_parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Directory to write <name>.gocd.yaml into (default: print to stdout)"
    )

    # files command
    files_parser = subparsers.add_parser(
        "files",
        help="List the config files a directory parse would read",
        parents=[parent_parser]
    )
    files_parser.add_argument(
        "directory",
        type=Path,
        help="Config repository checkout"
    )
    files_parser.add_argument(
        "--pattern",
        default=None,
        help="Comma separated file globs (default: **/*.gocd.yaml,**/*.gocd.yml)"
    )

    # capabilities command
    subparsers.add_parser(
        "capabilities",
        help="Print the engine capability descriptor",
        parents=[parent_parser]
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command == "parse":
        try:
            # Lazy import: only load the engine when a command needs it
            from .api import parse_directory

            settings = None
            if args.default_format_version is not None:
                settings = {"default_format_version": args.default_format_version}
            response = parse_directory(args.directory, pattern=args.pattern, settings=settings)
            if not response.ok:
                _fail(response)
            sys.exit(_report_collection(response.body, args.out, args.json, args.quiet))
        except Exception as e:
            print(f"Unexpected error: {e}", file=sys.stderr)
            import traceback
            traceback.print_exc()
            sys.exit(1)
    elif args.command == "parse-files":
        try:
            from .api import parse_contents

            contents = {}
            for path in args.files:
                contents[path.as_posix()] = path.read_bytes()
            response = parse_contents(contents, default_format_version=args.default_format_version)
            if not response.ok:
                _fail(response)
            sys.exit(_report_collection(response.body, args.out, args.json, args.quiet))
        except FileNotFoundError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        except Exception as e:
            print(f"Unexpected error: {e}", file=sys.stderr)
            import traceback
            traceback.print_exc()
            sys.exit(1)
    elif args.command == "export":
        try:
            from .api import export_pipeline

            pipeline = json.loads(args.pipeline.read_text(encoding="utf-8"))
            response = export_pipeline(pipeline)
            if not response.ok:
                _fail(response)
            text = response.body["pipeline"]
            if args.out is not None:
                args.out.mkdir(parents=True, exist_ok=True)
                target = args.out / response.headers["X-Export-Filename"]
                target.write_text(text, encoding="utf-8")
                if not args.quiet:
                    print("[OK] Export complete")
                    print(f"  File: {target}")
            else:
                sys.stdout.write(text)
            sys.exit(0)
        except (FileNotFoundError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        except Exception as e:
            print(f"Unexpected error: {e}", file=sys.stderr)
            import traceback
            traceback.print_exc()
            sys.exit(1)
    elif args.command == "files":
        try:
            from .api import list_config_files

            response = list_config_files(args.directory, pattern=args.pattern)
            if not response.ok:
                _fail(response)
            if not args.quiet:
                for name in response.body["files"]:
                    print(name)
            sys.exit(0)
        except Exception as e:
            print(f"Unexpected error: {e}", file=sys.stderr)
            sys.exit(1)
    elif args.command == "capabilities":
        from .api import get_capabilities
        from ._internal.canonical_json import pretty_dumps

        response = get_capabilities()
        print(pretty_dumps(response.body))
        sys.exit(0)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
