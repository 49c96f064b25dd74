"""toolfetch - install tool packages from a NuGet V3 feed

    Resolves the requested version, downloads and extracts the package into
    a versions directory, and prints where it landed. The installed tool is
    not executed.

    Returns:
        int: Exit code
"""
import json
import logging
import sys

from constants import Constants, ExitCodes
from common.errors import InstallFailed
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from args import parse_args
from cli_config import (
    ConfigError,
    apply_config,
    default_versions_root,
    get_access_token,
    load_config_file,
)
from installer.orchestrator import PackageInstaller
from installer.platform import resolve_package_name
from versioning.models import InstallResult, PackageSpecifier
from versioning.parser import classify

logger = logging.getLogger(__name__)


def format_result(result: InstallResult, output_format: str) -> str:
    """Render an install result for stdout.

    Args:
        result (InstallResult): Result to render.
        output_format (str): "json" or "text".

    Returns:
        str: Rendered result.
    """
    if output_format == "text":
        state = "already installed" if result.in_cache else "installed"
        return (
            f"{result.package_name} {result.resolved_version} {state}\n"
            f"folder: {result.package_folder}"
        )
    return json.dumps(result.to_dict(), indent=2)


def run(args) -> int:
    """Install the package described by parsed CLI arguments.

    Returns:
        int: Exit code
    """
    if args.CONFIG:
        try:
            apply_config(load_config_file(args.CONFIG))
        except ConfigError as e:
            logging.error("%s, aborting", e)
            return ExitCodes.FILE_ERROR.value

    package_name = args.PACKAGE
    if args.PLATFORM_PACKAGE:
        package_name = resolve_package_name(package_name)
    spec = PackageSpecifier(package_name, classify(args.VERSION), args.ENTRY_POINT)
    # CLI flags win over config values without touching Constants
    versions_root = args.VERSIONS_ROOT or default_versions_root()
    service_index_url = args.SERVICE_INDEX_URL or Constants.SERVICE_INDEX_URL

    if is_debug_enabled(logger):
        logger.debug(
            "Install requested",
            extra=extra_context(
                event="function_entry",
                component="cli",
                action="run",
                package=package_name,
                version=str(spec.version_request),
                target=versions_root,
            ),
        )

    installer = PackageInstaller(
        versions_root,
        service_index_url=service_index_url,
        access_token=get_access_token(args.ACCESS_TOKEN),
    )
    try:
        result = installer.install(spec)
    except InstallFailed as e:
        logging.error("%s", e)
        return ExitCodes.INSTALL_FAILED.value
    except OSError as e:
        logging.error("File system error: %s", e)
        return ExitCodes.FILE_ERROR.value

    if not args.QUIET:
        print(format_result(result, args.OUTPUT_FORMAT))
    return ExitCodes.SUCCESS.value


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(level=args.LOG_LEVEL, log_file=args.LOG_FILE)
    sys.exit(run(args))


if __name__ == "__main__":
    main()
