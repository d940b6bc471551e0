import configparser
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .logger import effective_level

_TRUE_VALUES = ("true", "1", "yes")


@dataclass(frozen=True)
class ServerConfig:
    base_dir: str
    address: str = ""
    port: int = 8080
    threads: int = 10  # cheroot worker threads


@dataclass(frozen=True)
class CacheConfig:
    enabled: bool = True
    ttl_seconds: int = 300
    prune_interval_seconds: float = 1.0


@dataclass(frozen=True)
class LogConfig:
    level: str = "WARNING"
    file: str = ""
    console: bool = True


@dataclass(frozen=True)
class AppConfig:
    server: ServerConfig
    cache: CacheConfig
    logging: LogConfig
    debug: bool = False


def _parse_int(section: str, key: str, value, minimum: int = 0) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(
            f"Invalid {key} value in [{section}]: '{value}' - must be an integer"
        )
    if number < minimum:
        raise ValueError(f"Invalid {key} value in [{section}]: {number} - must be >= {minimum}")
    return number


def _parse_float(section: str, key: str, value) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {key} value in [{section}]: '{value}' - must be a number")
    if number <= 0:
        raise ValueError(f"Invalid {key} value in [{section}]: {number} - must be > 0")
    return number


def normalize_base_dir(base_dir: str) -> str:
    """
    Make the served directory absolute and terminate it with one separator.

    Raises:
        ValueError: If the directory does not exist or is not a directory.
    """
    absolute = os.path.abspath(os.path.expanduser(base_dir))
    if not os.path.isdir(absolute):
        raise ValueError(f"Invalid base directory: {base_dir} - not an existing directory")
    return absolute.rstrip(os.sep) + os.sep


def load_config(config_path: str | None = None, **cli_args) -> AppConfig:
    """
    Load configuration from an INI file and/or CLI arguments.
    CLI arguments take precedence over config file.

    Args:
        config_path: Path to the INI configuration file.
        **cli_args: Key-value pairs from command line arguments.

    Returns:
        AppConfig: The populated configuration object.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If a value is malformed or the base directory is unusable.
    """
    # Initialize with defaults
    server_config = {
        "base_dir": "." + os.sep,
        "address": "",
        "port": 8080,
        "threads": 10,
    }
    cache_config = {
        "enabled": True,
        "ttl_seconds": 300,
        "prune_interval_seconds": 1.0,
    }
    log_config = {
        "level": "WARNING",
        "file": "",
        "console": True,
    }
    debug = False

    # Parse INI file if provided
    if config_path is not None:
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        parser = configparser.ConfigParser()
        parser.read(config_file, encoding="utf-8")

        # Load [server] section
        if parser.has_section("server"):
            server_section = parser["server"]
            if server_section.get("address"):
                server_config["address"] = server_section.get("address")
            if server_section.get("port"):
                server_config["port"] = _parse_int("server", "port", server_section.get("port"))
            if server_section.get("base"):
                server_config["base_dir"] = server_section.get("base")
            if server_section.get("threads"):
                server_config["threads"] = _parse_int(
                    "server", "threads", server_section.get("threads"), minimum=1
                )

        # Load [cache] section
        if parser.has_section("cache"):
            cache_section = parser["cache"]
            if cache_section.get("enabled"):
                cache_config["enabled"] = cache_section.get("enabled").lower() in _TRUE_VALUES
            if cache_section.get("ttl_seconds"):
                cache_config["ttl_seconds"] = _parse_int(
                    "cache", "ttl_seconds", cache_section.get("ttl_seconds")
                )
            if cache_section.get("prune_interval_seconds"):
                cache_config["prune_interval_seconds"] = _parse_float(
                    "cache", "prune_interval_seconds", cache_section.get("prune_interval_seconds")
                )

        # Load [logging] section
        if parser.has_section("logging"):
            log_section = parser["logging"]
            if log_section.get("level"):
                log_config["level"] = log_section.get("level")
            if log_section.get("file"):
                log_config["file"] = log_section.get("file")
            if log_section.get("console"):
                log_config["console"] = log_section.get("console").lower() in _TRUE_VALUES

        if parser.has_section("general") and parser["general"].get("debug"):
            debug = parser["general"]["debug"].lower() in _TRUE_VALUES

    # Override with CLI arguments (cli_args take precedence)
    if cli_args.get("address") is not None:
        server_config["address"] = cli_args["address"]
    if cli_args.get("port") is not None:
        server_config["port"] = _parse_int("server", "port", cli_args["port"])
    if cli_args.get("base") is not None:
        server_config["base_dir"] = cli_args["base"]
    if cli_args.get("threads") is not None:
        server_config["threads"] = _parse_int("server", "threads", cli_args["threads"], minimum=1)
    if cli_args.get("dircache") is not None:
        cache_config["ttl_seconds"] = _parse_int("cache", "ttl_seconds", cli_args["dircache"])
    if cli_args.get("debug"):
        debug = True
    if debug:
        log_config["console"] = True

    if not 0 <= server_config["port"] <= 65535:
        raise ValueError(f"Invalid port: {server_config['port']}. Must be between 0 and 65535.")

    level = effective_level(log_config["level"], verbose=bool(cli_args.get("verbose")), debug=debug)

    base_dir = normalize_base_dir(server_config["base_dir"])
    logging.getLogger(__name__).debug("Serving base directory %s", base_dir)

    return AppConfig(
        server=ServerConfig(
            base_dir=base_dir,
            address=server_config["address"],
            port=server_config["port"],
            threads=server_config["threads"],
        ),
        cache=CacheConfig(
            enabled=cache_config["enabled"],
            ttl_seconds=cache_config["ttl_seconds"],
            prune_interval_seconds=cache_config["prune_interval_seconds"],
        ),
        logging=LogConfig(
            level=level,
            file=log_config["file"],
            console=log_config["console"],
        ),
        debug=debug,
    )
