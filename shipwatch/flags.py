"""Command-line flags whose defaults come from environment variables."""

from __future__ import annotations

import argparse
import csv
import enum
import os
import re
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, NamedTuple, Optional

DOCKER_API_MIN_VERSION = "1.25"

SECRET_FLAGS = (
    "notification-email-server-password",
    "notification-slack-hook-url",
    "notification-msteams-hook",
    "notification-gotify-token",
)

_TRUE_STRINGS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_STRINGS = {"0", "f", "F", "FALSE", "false", "False"}

_DURATION_PART = re.compile(r"([0-9]+\.?[0-9]*|\.[0-9]+)(ns|us|µs|μs|ms|s|m|h)")
_NANOS_PER_UNIT = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}
_DURATION_UNIT_CHARS = set("nsuµmh")


class CommonFlags(NamedTuple):
    """The flags that steer the main update flow."""

    cleanup: bool
    no_restart: bool
    monitor_only: bool
    timeout: timedelta


class _Kind(enum.Enum):
    STRING = "string"
    BOOL = "bool"
    INT = "int"
    DURATION = "duration"
    SLICE = "slice"
    ARRAY = "array"
    PRESENCE = "presence"


@dataclass(frozen=True)
class _Flag:
    name: str
    short: str
    env: str
    kind: _Kind
    help: str


def defaults() -> dict[str, Any]:
    """Return the default values of the environment variables that have one."""
    return {
        "DOCKER_HOST": "unix:///var/run/docker.sock",
        "DOCKER_API_VERSION": DOCKER_API_MIN_VERSION,
        "WATCHTOWER_POLL_INTERVAL": 24 * 60 * 60,
        "WATCHTOWER_TIMEOUT": timedelta(seconds=10),
        "WATCHTOWER_NOTIFICATIONS": [],
        "WATCHTOWER_NOTIFICATIONS_LEVEL": "info",
        "WATCHTOWER_NOTIFICATION_EMAIL_SERVER_PORT": 25,
        "WATCHTOWER_NOTIFICATION_EMAIL_SUBJECTTAG": "",
        "WATCHTOWER_NOTIFICATION_SLACK_IDENTIFIER": "watchtower",
    }


def env_value(name: str, environ: Optional[Mapping[str, str]] = None) -> Any:
    """Return the environment value of ``name``, or its default.

    An empty variable counts as unset. Returns None when neither exists.
    """
    env = os.environ if environ is None else environ
    value = env.get(name)
    if value:
        return value
    return defaults().get(name)


def _parse_bool(raw: str) -> bool:
    if raw in _TRUE_STRINGS:
        return True
    if raw in _FALSE_STRINGS:
        return False
    raise ValueError(f"invalid boolean: {raw!r}")


def _parse_int(raw: str) -> int:
    text = raw.strip()
    try:
        return int(text, 0)
    except ValueError:
        if re.fullmatch(r"[+-]?0[0-7_]+", text):
            return int(text, 8)
        raise


def _parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``1h30m`` or ``10s``; a unit is required."""
    remaining = text
    negative = False
    if remaining[:1] in ("+", "-"):
        negative = remaining[0] == "-"
        remaining = remaining[1:]
    if remaining == "0":
        return timedelta(0)
    if not remaining:
        raise ValueError(f"invalid duration: {text!r}")
    nanos = Decimal(0)
    pos = 0
    while pos < len(remaining):
        match = _DURATION_PART.match(remaining, pos)
        if match is None:
            raise ValueError(f"invalid duration: {text!r}")
        try:
            amount = Decimal(match.group(1))
        except InvalidOperation as exc:
            raise ValueError(f"invalid duration: {text!r}") from exc
        nanos += amount * _NANOS_PER_UNIT[match.group(2)]
        pos = match.end()
    micros = int(nanos / 1000)
    return timedelta(microseconds=-micros if negative else micros)


def _env_string(name: str, environ: Optional[Mapping[str, str]]) -> str:
    value = env_value(name, environ)
    if value is None:
        return ""
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


def _env_bool(name: str, environ: Optional[Mapping[str, str]]) -> bool:
    value = env_value(name, environ)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return _parse_bool(value)
        except ValueError:
            return False
    return False


def _env_int(name: str, environ: Optional[Mapping[str, str]]) -> int:
    value = env_value(name, environ)
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return _parse_int(value)
        except ValueError:
            return 0
    return 0


def _env_duration(name: str, environ: Optional[Mapping[str, str]]) -> timedelta:
    value = env_value(name, environ)
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)):
        return timedelta(microseconds=value / 1000)
    if isinstance(value, str):
        try:
            if _DURATION_UNIT_CHARS.intersection(value):
                return _parse_duration(value)
            return timedelta(microseconds=_parse_int(value) / 1000)
        except ValueError:
            return timedelta(0)
    return timedelta(0)


def _env_slice(name: str, environ: Optional[Mapping[str, str]]) -> list[str]:
    value = env_value(name, environ)
    if isinstance(value, list):
        return list(value)
    if isinstance(value, str):
        return value.split()
    return []


class _ListAction(argparse.Action):
    """Collects repeated values; the first use replaces the default."""

    def __init__(self, option_strings, dest, split: bool = False, **kwargs) -> None:
        self.split = split
        super().__init__(option_strings, dest, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None) -> None:
        current = getattr(namespace, self.dest, None)
        if current is self.default or current is None:
            current = []
        if self.split:
            if values == "":
                items: list[str] = []
            else:
                try:
                    items = next(csv.reader([values]))
                except csv.Error as exc:
                    parser.error(f"invalid value for {option_string}: {exc}")
        else:
            items = [values]
        setattr(namespace, self.dest, [*current, *items])


def _add_flag(
    parser: argparse.ArgumentParser, flag: _Flag, environ: Optional[Mapping[str, str]]
) -> None:
    names = [f"--{flag.name}"]
    if flag.short:
        names.append(f"-{flag.short}")
    kind = flag.kind
    if kind is _Kind.STRING:
        parser.add_argument(*names, default=_env_string(flag.env, environ), help=flag.help)
    elif kind is _Kind.BOOL:
        parser.add_argument(
            *names, action="store_true", default=_env_bool(flag.env, environ), help=flag.help
        )
    elif kind is _Kind.PRESENCE:
        parser.add_argument(
            *names,
            action="store_true",
            default=env_value(flag.env, environ) is not None,
            help=flag.help,
        )
    elif kind is _Kind.INT:
        parser.add_argument(
            *names, type=_parse_int, default=_env_int(flag.env, environ), help=flag.help
        )
    elif kind is _Kind.DURATION:
        parser.add_argument(
            *names,
            type=_parse_duration,
            default=_env_duration(flag.env, environ),
            help=flag.help,
        )
    elif kind is _Kind.SLICE:
        parser.add_argument(
            *names,
            action=_ListAction,
            split=True,
            default=_env_slice(flag.env, environ),
            help=flag.help,
        )
    elif kind is _Kind.ARRAY:
        parser.add_argument(
            *names,
            action=_ListAction,
            split=False,
            default=_env_slice(flag.env, environ),
            help=flag.help,
        )


_DOCKER_FLAGS = (
    _Flag("host", "H", "DOCKER_HOST", _Kind.STRING, "daemon socket to connect to"),
    _Flag("tlsverify", "v", "DOCKER_TLS_VERIFY", _Kind.BOOL, "use TLS and verify the remote"),
    _Flag(
        "api-version", "a", "DOCKER_API_VERSION", _Kind.STRING,
        "api version to use by docker client",
    ),
)

_SYSTEM_FLAGS = (
    _Flag("interval", "i", "WATCHTOWER_POLL_INTERVAL", _Kind.INT, "poll interval (in seconds)"),
    _Flag(
        "schedule", "s", "WATCHTOWER_SCHEDULE", _Kind.STRING,
        "the cron expression which defines when to update",
    ),
    _Flag(
        "stop-timeout", "t", "WATCHTOWER_TIMEOUT", _Kind.DURATION,
        "timeout before a container is forcefully stopped",
    ),
    _Flag("no-pull", "", "WATCHTOWER_NO_PULL", _Kind.BOOL, "do not pull any new images"),
    _Flag("no-restart", "", "WATCHTOWER_NO_RESTART", _Kind.BOOL, "do not restart any containers"),
    _Flag(
        "no-startup-message", "", "WATCHTOWER_NO_STARTUP_MESSAGE", _Kind.BOOL,
        "Prevents watchtower from sending a startup message",
    ),
    _Flag(
        "cleanup", "c", "WATCHTOWER_CLEANUP", _Kind.BOOL,
        "remove previously used images after updating",
    ),
    _Flag(
        "remove-volumes", "", "WATCHTOWER_REMOVE_VOLUMES", _Kind.BOOL,
        "remove attached volumes before updating",
    ),
    _Flag(
        "label-enable", "e", "WATCHTOWER_LABEL_ENABLE", _Kind.BOOL,
        "watch containers where the com.centurylinklabs.watchtower.enable label is true",
    ),
    _Flag("debug", "d", "WATCHTOWER_DEBUG", _Kind.BOOL, "enable debug mode with verbose logging"),
    _Flag(
        "trace", "", "WATCHTOWER_TRACE", _Kind.BOOL,
        "enable trace mode with very verbose logging - caution, exposes credentials",
    ),
    _Flag(
        "monitor-only", "m", "WATCHTOWER_MONITOR_ONLY", _Kind.BOOL,
        "Will only monitor for new images, not update the containers",
    ),
    _Flag("run-once", "R", "WATCHTOWER_RUN_ONCE", _Kind.BOOL, "Run once now and exit"),
    _Flag(
        "include-restarting", "", "WATCHTOWER_INCLUDE_RESTARTING", _Kind.BOOL,
        "Will also include restarting containers",
    ),
    _Flag(
        "include-stopped", "S", "WATCHTOWER_INCLUDE_STOPPED", _Kind.BOOL,
        "Will also include created and exited containers",
    ),
    _Flag(
        "revive-stopped", "", "WATCHTOWER_REVIVE_STOPPED", _Kind.BOOL,
        "Will also start stopped containers that were updated, if include-stopped is active",
    ),
    _Flag(
        "enable-lifecycle-hooks", "", "WATCHTOWER_LIFECYCLE_HOOKS", _Kind.BOOL,
        "Enable the execution of commands triggered by pre- and post-update lifecycle hooks",
    ),
    _Flag(
        "rolling-restart", "", "WATCHTOWER_ROLLING_RESTART", _Kind.BOOL,
        "Restart containers one at a time",
    ),
    _Flag(
        "http-api-update", "", "WATCHTOWER_HTTP_API_UPDATE", _Kind.BOOL,
        "Runs Watchtower in HTTP API mode, so that image updates must to be triggered by a request",
    ),
    _Flag(
        "http-api-metrics", "", "WATCHTOWER_HTTP_API_METRICS", _Kind.BOOL,
        "Runs Watchtower with the Prometheus metrics API enabled",
    ),
    _Flag(
        "http-api-token", "", "WATCHTOWER_HTTP_API_TOKEN", _Kind.STRING,
        "Sets an authentication token to HTTP API requests.",
    ),
    _Flag(
        "http-api-periodic-polls", "", "WATCHTOWER_HTTP_API_PERIODIC_POLLS", _Kind.BOOL,
        "Also run periodic updates (specified with --interval and --schedule) "
        "if HTTP API is enabled",
    ),
    _Flag(
        "no-color", "", "NO_COLOR", _Kind.PRESENCE,
        "Disable ANSI color escape codes in log output",
    ),
    _Flag(
        "scope", "", "WATCHTOWER_SCOPE", _Kind.STRING,
        "Defines a monitoring scope for the Watchtower instance.",
    ),
)

_NOTIFICATION_FLAGS = (
    _Flag(
        "notifications", "n", "WATCHTOWER_NOTIFICATIONS", _Kind.SLICE,
        " notification types to send (valid: email, slack, msteams, gotify, shoutrrr)",
    ),
    _Flag(
        "notifications-level", "", "WATCHTOWER_NOTIFICATIONS_LEVEL", _Kind.STRING,
        "The log level used for sending notifications. "
        "Possible values: panic, fatal, error, warn, info or debug",
    ),
    _Flag(
        "notifications-hostname", "", "WATCHTOWER_NOTIFICATIONS_HOSTNAME", _Kind.STRING,
        "Custom hostname for notification titles",
    ),
    _Flag(
        "notification-email-from", "", "WATCHTOWER_NOTIFICATION_EMAIL_FROM", _Kind.STRING,
        "Address to send notification emails from",
    ),
    _Flag(
        "notification-email-to", "", "WATCHTOWER_NOTIFICATION_EMAIL_TO", _Kind.STRING,
        "Address to send notification emails to",
    ),
    _Flag(
        "notification-email-delay", "", "WATCHTOWER_NOTIFICATION_EMAIL_DELAY", _Kind.INT,
        "Delay before sending notifications, expressed in seconds",
    ),
    _Flag(
        "notification-email-server", "", "WATCHTOWER_NOTIFICATION_EMAIL_SERVER", _Kind.STRING,
        "SMTP server to send notification emails through",
    ),
    _Flag(
        "notification-email-server-port", "", "WATCHTOWER_NOTIFICATION_EMAIL_SERVER_PORT",
        _Kind.INT, "SMTP server port to send notification emails through",
    ),
    _Flag(
        "notification-email-server-tls-skip-verify", "",
        "WATCHTOWER_NOTIFICATION_EMAIL_SERVER_TLS_SKIP_VERIFY", _Kind.BOOL,
        "Controls whether watchtower verifies the SMTP server's certificate chain "
        "and host name. Should only be used for testing.",
    ),
    _Flag(
        "notification-email-server-user", "", "WATCHTOWER_NOTIFICATION_EMAIL_SERVER_USER",
        _Kind.STRING, "SMTP server user for sending notifications",
    ),
    _Flag(
        "notification-email-server-password", "",
        "WATCHTOWER_NOTIFICATION_EMAIL_SERVER_PASSWORD", _Kind.STRING,
        "SMTP server password for sending notifications",
    ),
    _Flag(
        "notification-email-subjecttag", "", "WATCHTOWER_NOTIFICATION_EMAIL_SUBJECTTAG",
        _Kind.STRING, "Subject prefix tag for notifications via mail",
    ),
    _Flag(
        "notification-slack-hook-url", "", "WATCHTOWER_NOTIFICATION_SLACK_HOOK_URL",
        _Kind.STRING, "The Slack Hook URL to send notifications to",
    ),
    _Flag(
        "notification-slack-identifier", "", "WATCHTOWER_NOTIFICATION_SLACK_IDENTIFIER",
        _Kind.STRING,
        "A string which will be used to identify the messages coming from this "
        "watchtower instance",
    ),
    _Flag(
        "notification-slack-channel", "", "WATCHTOWER_NOTIFICATION_SLACK_CHANNEL",
        _Kind.STRING,
        "A string which overrides the webhook's default channel. Example: #my-custom-channel",
    ),
    _Flag(
        "notification-slack-icon-emoji", "", "WATCHTOWER_NOTIFICATION_SLACK_ICON_EMOJI",
        _Kind.STRING, "An emoji code string to use in place of the default icon",
    ),
    _Flag(
        "notification-slack-icon-url", "", "WATCHTOWER_NOTIFICATION_SLACK_ICON_URL",
        _Kind.STRING, "An icon image URL string to use in place of the default icon",
    ),
    _Flag(
        "notification-msteams-hook", "", "WATCHTOWER_NOTIFICATION_MSTEAMS_HOOK_URL",
        _Kind.STRING, "The MSTeams WebHook URL to send notifications to",
    ),
    _Flag(
        "notification-msteams-data", "", "WATCHTOWER_NOTIFICATION_MSTEAMS_USE_LOG_DATA",
        _Kind.BOOL,
        "The MSTeams notifier will try to extract log entry fields as MSTeams message facts",
    ),
    _Flag(
        "notification-gotify-url", "", "WATCHTOWER_NOTIFICATION_GOTIFY_URL", _Kind.STRING,
        "The Gotify URL to send notifications to",
    ),
    _Flag(
        "notification-gotify-token", "", "WATCHTOWER_NOTIFICATION_GOTIFY_TOKEN", _Kind.STRING,
        "The Gotify Application required to query the Gotify API",
    ),
    _Flag(
        "notification-gotify-tls-skip-verify", "",
        "WATCHTOWER_NOTIFICATION_GOTIFY_TLS_SKIP_VERIFY", _Kind.BOOL,
        "Controls whether watchtower verifies the Gotify server's certificate chain "
        "and host name. Should only be used for testing.",
    ),
    _Flag(
        "notification-template", "", "WATCHTOWER_NOTIFICATION_TEMPLATE", _Kind.STRING,
        "The shoutrrr text/template for the messages",
    ),
    _Flag(
        "notification-url", "", "WATCHTOWER_NOTIFICATION_URL", _Kind.ARRAY,
        "The shoutrrr URL to send notifications to",
    ),
    _Flag(
        "notification-report", "", "WATCHTOWER_NOTIFICATION_REPORT", _Kind.BOOL,
        "Use the session report as the notification template data",
    ),
    _Flag(
        "warn-on-head-failure", "", "WATCHTOWER_WARN_ON_HEAD_FAILURE", _Kind.STRING,
        "When to warn about HEAD pull requests failing. Possible values: always, auto or never",
    ),
)


def register_docker_flags(
    parser: argparse.ArgumentParser, environ: Optional[Mapping[str, str]] = None
) -> None:
    """Add the flags used directly by the Docker API client."""
    for flag in _DOCKER_FLAGS:
        _add_flag(parser, flag, environ)


def register_system_flags(
    parser: argparse.ArgumentParser, environ: Optional[Mapping[str, str]] = None
) -> None:
    """Add the flags that modify the program flow."""
    for flag in _SYSTEM_FLAGS:
        _add_flag(parser, flag, environ)


def register_notification_flags(
    parser: argparse.ArgumentParser, environ: Optional[Mapping[str, str]] = None
) -> None:
    """Add the flags that configure notifications."""
    for flag in _NOTIFICATION_FLAGS:
        _add_flag(parser, flag, environ)


def build_parser(environ: Optional[Mapping[str, str]] = None) -> argparse.ArgumentParser:
    """Return the full command-line parser, defaults taken from ``environ``."""
    parser = argparse.ArgumentParser(
        prog="watchtower",
        description=(
            "Automatically updates running Docker containers "
            "whenever a new image is released."
        ),
        allow_abbrev=False,
    )
    register_docker_flags(parser, environ)
    register_system_flags(parser, environ)
    register_notification_flags(parser, environ)
    parser.add_argument("names", nargs="*", help="names of the containers to watch")
    return parser


def _set_env_opt(environ: MutableMapping[str, str], name: str, value: str) -> None:
    if not value or value == environ.get(name):
        return
    environ[name] = value


def env_config(
    options: argparse.Namespace, environ: Optional[MutableMapping[str, str]] = None
) -> None:
    """Copy the Docker connection options into the environment for the client."""
    env = os.environ if environ is None else environ
    _set_env_opt(env, "DOCKER_HOST", options.host)
    if options.tlsverify:
        _set_env_opt(env, "DOCKER_TLS_VERIFY", "1")
    _set_env_opt(env, "DOCKER_API_VERSION", options.api_version)


def read_flags(options: argparse.Namespace) -> CommonFlags:
    """Return the flags used in the main update flow."""
    return CommonFlags(
        cleanup=options.cleanup,
        no_restart=options.no_restart,
        monitor_only=options.monitor_only,
        timeout=options.stop_timeout,
    )


def _is_file(value: str) -> bool:
    try:
        os.stat(value)
    except FileNotFoundError:
        return False
    except ValueError:
        return False
    except OSError:
        return True
    return True


def get_secrets_from_files(options: argparse.Namespace) -> None:
    """Replace secret options that name an existing file with that file's contents.

    Raises OSError when such a file cannot be read.
    """
    for secret in SECRET_FLAGS:
        dest = secret.replace("-", "_")
        value = getattr(options, dest, None) or ""
        if value and _is_file(value):
            setattr(options, dest, Path(value).read_text().strip())