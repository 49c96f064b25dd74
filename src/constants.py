"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    INSTALL_FAILED = 2


class ServiceTypes(Enum):
    """Service families of a NuGet V3 service index used by the installer.

    Args:
        Enum (string): Service name, i.e. the part of ``@type`` before the slash.
    """

    REGISTRATIONS = "RegistrationsBaseUrl"
    PACKAGE_BASE_ADDRESS = "PackageBaseAddress"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    SERVICE_INDEX_URL = "https://api.nuget.org/v3/index.json"
    VERSIONS_ROOT = None  # Falls back to $TOOLFETCH_HOME/versions
    PACKAGE_EXTENSION = ".nupkg"
    LOG_FORMAT = "[%(levelname)s] %(message)s"

    # Version request keywords
    VERSION_LATEST = "Latest"
    VERSION_LATEST_PRERELEASE = "LatestPreRelease"

    # Schema versions of each service family the client was built against
    KNOWN_REGISTRATION_VERSIONS = ["3.6.0", "3.0.0-beta"]
    KNOWN_PACKAGE_BASE_VERSIONS = ["3.0.0"]

    # HTTP tunables
    REQUEST_TIMEOUT = 2.5  # Idle timeout in seconds for JSON calls
    DOWNLOAD_TIMEOUT = 30  # Idle timeout in seconds for streamed downloads
    DOWNLOAD_DEADLINE_SEC = 300  # Total wall time allowed for one archive stream
    DOWNLOAD_CHUNK_SIZE = 64 * 1024
    DOWNLOAD_RETRIES = 2
    DOWNLOAD_RETRY_DELAY_SEC = 1.0
    MAX_REDIRECTS = 5
    INSTALL_MAX_ATTEMPTS = 3
    USER_AGENT = "toolfetch/1.0"

    # Environment variables
    ENV_HOME = "TOOLFETCH_HOME"
    ENV_LOG_LEVEL = "TOOLFETCH_LOG_LEVEL"
    ENV_ACCESS_TOKEN = "TOOLFETCH_ACCESS_TOKEN"
    ENV_TOKEN_COMMAND = "TOOLFETCH_TOKEN_COMMAND"
    DEFAULT_HOME_DIR_NAME = ".toolfetch"
    VERSIONS_DIR_NAME = "versions"
