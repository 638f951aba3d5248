#!/usr/bin/env python3
import argparse
import logging
import sys
from typing import Optional

import irdeps
from irdeps.analysis import Analysis
from irdeps.analysis.cfg import node_name
from irdeps.exceptions import IRDepsException
from irdeps.ir.function import IRFunction
from irdeps.ir.parser import parse_ir
from irdeps.settings import Settings
from irdeps.warnings import WARNINGS_CONTROL_OPTIONS, IRDepsWarning, warnings_filter

"""
Standalone entry point into the analyses. Parses textual IR and prints
the requested graphs in graphviz dot format.
"""

format_options_help = """Format to print, one or more of (comma-separated):
cfg         - Control flow graph
dom         - Dominator tree
postdom     - Post-dominator tree
df          - Dominance frontiers
cdg         - Control dependence graph
deps        - Instruction dependence graph (default)
"""

OUTPUT_FORMATS = ("cfg", "dom", "postdom", "df", "cdg", "deps")


def _parse_cli_args():
    return _parse_args(sys.argv[1:])


def _parse_args(argv: list[str]):
    parser = argparse.ArgumentParser(
        description="Control and data dependence analysis for IR functions",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("input_file", help="IR sourcefile", nargs="?")
    parser.add_argument("--version", action="version", version=irdeps.__version__)
    parser.add_argument(
        "--stdin", action="store_true", help="whether to pull IR input from stdin"
    )
    parser.add_argument("--function", help="only analyze the function with this name")
    parser.add_argument("-f", "--format", help=format_options_help, default="deps", dest="format")
    parser.add_argument(
        "--max-search-depth",
        type=int,
        help="bound the length of dependence paths followed by transitive queries",
        dest="max_search_depth",
    )
    parser.add_argument(
        "--no-memory-dependence",
        action="store_true",
        help="do not add memory dependence edges",
        dest="no_memory_dependence",
    )
    parser.add_argument(
        "--exclude-unreachable",
        action="store_true",
        help="leave blocks unreachable from the entry out of the dependence graph",
        dest="exclude_unreachable",
    )
    parser.add_argument(
        "--warnings-control",
        help="Turn warnings into errors (\"error\") or silence them (\"none\")",
        choices=WARNINGS_CONTROL_OPTIONS,
        dest="warnings_control",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="print debug logs")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    output_formats = [fmt.strip() for fmt in args.format.split(",")]
    for fmt in output_formats:
        if fmt not in OUTPUT_FORMATS:
            print(f"Error: unknown format `{fmt}`, expected one of {', '.join(OUTPUT_FORMATS)}")
            sys.exit(1)

    if args.max_search_depth is not None and args.max_search_depth < 0:
        print("Error: --max-search-depth must not be negative")
        sys.exit(1)

    settings = Settings(
        max_search_depth=args.max_search_depth,
        memory_dependence=not args.no_memory_dependence,
        include_unreachable=not args.exclude_unreachable,
    )

    if args.stdin:
        if not sys.stdin.isatty():
            ir_source = sys.stdin.read()
        else:
            # No input provided
            print("Error: --stdin flag used but no input provided")
            sys.exit(1)
    else:
        if args.input_file is None:
            print("Error: No input file provided, either use --stdin or provide a path")
            sys.exit(1)
        try:
            with open(args.input_file, "r") as f:
                ir_source = f.read()
        except OSError as e:
            print(f"Error: cannot read {args.input_file}: {e.strerror}")
            sys.exit(1)

    try:
        with warnings_filter(args.warnings_control):
            _run(ir_source, settings, args.function, output_formats)
    except (IRDepsException, IRDepsWarning) as e:
        print(f"Error: {e}")
        sys.exit(1)


def _run(
    ir_source: str, settings: Settings, function: Optional[str], output_formats: list[str]
) -> None:
    ctx = parse_ir(ir_source)
    analysis = Analysis(ctx, settings)
    if function is not None:
        functions = [analysis.get_function_by_name(function)]
    else:
        functions = analysis.get_functions()

    for fn in functions:
        for fmt in output_formats:
            print(_format_output(analysis, fn, fmt))


def _format_output(analysis: Analysis, fn: IRFunction, fmt: str) -> str:
    if fmt == "cfg":
        return analysis.get_cfg(fn).as_graph()
    if fmt == "dom":
        return analysis.get_dominator_tree(fn).as_graph()
    if fmt == "postdom":
        return analysis.get_post_dominator_tree(fn).as_graph()
    if fmt == "df":
        return _format_frontiers(analysis, fn)
    if fmt == "cdg":
        return analysis.get_control_dependence_graph(fn).as_graph()
    assert fmt == "deps", fmt
    return analysis.get_dependence_graph(fn).as_graph()


def _format_frontiers(analysis: Analysis, fn: IRFunction) -> str:
    lines = ["digraph dominance_frontier {"]
    for node, frontier in analysis.get_dominance_frontier(fn).items():
        for df_node in frontier:
            lines.append(f'    "{node_name(node)}" -> "{node_name(df_node)}"')
    lines.append("}")
    return "\n".join(lines)


if __name__ == "__main__":
    _parse_args(sys.argv[1:])
