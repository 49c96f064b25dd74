"""Argument parsing functionality for toolfetch."""

import argparse
from constants import Constants

def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="toolfetch",
        description=(
            "toolfetch - Resolve, download and extract tool packages from a NuGet V3 feed"
        ),
        add_help=True,
    )

    parser.add_argument("-p", "--package",
                        dest="PACKAGE",
                        help="Name of the package to install",
                        action="store", type=str,
                        required=True)
    parser.add_argument("-v", "--version",
                        dest="VERSION",
                        help=(
                            "Exact version, 'Latest' or 'LatestPreRelease' (default: Latest). "
                            "Wildcards such as '1.*' mean Latest."
                        ),
                        action="store", type=str,
                        default=Constants.VERSION_LATEST)
    parser.add_argument("-o", "--output",
                        dest="VERSIONS_ROOT",
                        help="Versions directory to install into (default: $TOOLFETCH_HOME/versions)",
                        action="store",
                        type=str)
    parser.add_argument("--service-index",
                        dest="SERVICE_INDEX_URL",
                        help="Service index URL of the feed (default: %s)" % Constants.SERVICE_INDEX_URL,
                        action="store",
                        type=str)
    parser.add_argument("--token",
                        dest="ACCESS_TOKEN",
                        help="Access token for the feed (or set %s)" % Constants.ENV_ACCESS_TOKEN,
                        action="store",
                        type=str)
    parser.add_argument("--platform-package",
                        dest="PLATFORM_PACKAGE",
                        help="Append the runtime identifier of this platform to the package name",
                        action="store_true")
    parser.add_argument("-e", "--entry-point",
                        dest="ENTRY_POINT",
                        help="Path inside the package that must exist after install, e.g. tools/scanner",
                        action="store",
                        type=str)
    parser.add_argument("-f", "--format",
                        dest="OUTPUT_FORMAT",
                        help="Result output format (default: json)",
                        action="store",
                        type=str.lower,
                        choices=['json', 'text'],
                        default='json')

    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Do not print the result to stdout.",
                        action="store_true")

    # Config file (general)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON)",
                        action="store",
                        type=str)

    return parser.parse_args(argv)
