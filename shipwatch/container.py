"""A Docker container as seen through its inspect data, with label metadata."""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping
from typing import Any, Optional

from shipwatch.util import (
    slice_equal,
    slice_subtract,
    string_map_subtract,
    struct_map_subtract,
)

WATCHTOWER_LABEL = "com.centurylinklabs.watchtower"
SIGNAL_LABEL = "com.centurylinklabs.watchtower.stop-signal"
ENABLE_LABEL = "com.centurylinklabs.watchtower.enable"
MONITOR_ONLY_LABEL = "com.centurylinklabs.watchtower.monitor-only"
DEPENDS_ON_LABEL = "com.centurylinklabs.watchtower.depends-on"
ZODIAC_LABEL = "com.centurylinklabs.zodiac.original-image"
SCOPE_LABEL = "com.centurylinklabs.watchtower.scope"
PRE_CHECK_LABEL = "com.centurylinklabs.watchtower.lifecycle.pre-check"
POST_CHECK_LABEL = "com.centurylinklabs.watchtower.lifecycle.post-check"
PRE_UPDATE_LABEL = "com.centurylinklabs.watchtower.lifecycle.pre-update"
POST_UPDATE_LABEL = "com.centurylinklabs.watchtower.lifecycle.post-update"
PRE_CHECK_USER_LABEL = "com.centurylinklabs.watchtower.lifecycle.pre-check.user"
POST_CHECK_USER_LABEL = "com.centurylinklabs.watchtower.lifecycle.post-check.user"
PRE_UPDATE_TIMEOUT_LABEL = "com.centurylinklabs.watchtower.lifecycle.pre-update-timeout"
PRE_UPDATE_USER_LABEL = "com.centurylinklabs.watchtower.lifecycle.pre-update.user"
POST_UPDATE_USER_LABEL = "com.centurylinklabs.watchtower.lifecycle.post-update.user"

_TRUE_STRINGS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_STRINGS = {"0", "f", "F", "FALSE", "false", "False"}
_INTEGER = re.compile(r"[+-]?[0-9]+")
_SHA256_PREFIX = "sha256"
_SHORT_ID_LENGTH = 12


class ContainerError(Exception):
    """Base class for container configuration problems."""

    default_message = "container error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class NoImageInfoError(ContainerError):
    """The image information of the container is not available."""

    default_message = "no available image info"


class NoExposedPortsError(ContainerError):
    """The container binds ports but exposes none."""

    default_message = "exposed ports does not match port bindings"


class InvalidConfigError(ContainerError):
    """The container configuration is missing or invalid."""

    default_message = "container configuration missing or invalid"


def short_id(identifier: str) -> str:
    """Shorten an image or container ID to 12 characters.

    A ``sha256:`` prefix is dropped; any other prefix is kept.
    """
    prefix, sep, rest = identifier.partition(":")
    if not sep:
        return identifier[:_SHORT_ID_LENGTH]
    if prefix == _SHA256_PREFIX:
        return rest[:_SHORT_ID_LENGTH]
    return f"{prefix}:{rest[:_SHORT_ID_LENGTH]}"


def contains_watchtower_label(labels: Optional[Mapping[str, str]]) -> bool:
    """Tell whether the labels mark a watchtower instance."""
    return (labels or {}).get(WATCHTOWER_LABEL) == "true"


def _parse_bool(raw: str) -> bool:
    if raw in _TRUE_STRINGS:
        return True
    if raw in _FALSE_STRINGS:
        return False
    raise ValueError(f"invalid boolean: {raw!r}")


class Container:
    """A container described by its inspect data and that of its image."""

    def __init__(
        self,
        container_info: Optional[dict[str, Any]],
        image_info: Optional[dict[str, Any]] = None,
    ) -> None:
        self.container_info = container_info
        self.image_info = image_info
        self.stale = False
        self.linked_to_restarting = False

    def __repr__(self) -> str:
        name = self.container_info.get("Name") if self.container_info else None
        return f"Container(name={name!r}, stale={self.stale})"

    # --- internal accessors -------------------------------------------------

    def _info(self) -> dict[str, Any]:
        if self.container_info is None:
            raise InvalidConfigError()
        return self.container_info

    def _labels(self) -> dict[str, str]:
        config = self._info().get("Config") or {}
        return config.get("Labels") or {}

    def _label(self, label: str) -> Optional[str]:
        return self._labels().get(label)

    def _label_or_empty(self, label: str) -> str:
        return self._labels().get(label, "")

    def _state(self) -> dict[str, Any]:
        return self._info().get("State") or {}

    # --- identity ------------------------------------------------------------

    def id(self) -> str:
        """Return the container ID."""
        return self._info()["Id"]

    def name(self) -> str:
        """Return the container name."""
        return self._info()["Name"]

    def is_running(self) -> bool:
        """Tell whether the container state is running."""
        return bool(self._state().get("Running", False))

    def is_restarting(self) -> bool:
        """Tell whether the container state is restarting."""
        return bool(self._state().get("Restarting", False))

    def image_id(self) -> str:
        """Return the ID of the image the container was started from."""
        if self.image_info is None:
            raise NoImageInfoError()
        return self.image_info["Id"]

    def safe_image_id(self) -> str:
        """Return the image ID, or an empty string when it is unknown."""
        if self.image_info is None:
            return ""
        return self.image_info.get("Id", "")

    def image_name(self) -> str:
        """Return the image name, with a ``latest`` tag when none was given."""
        image_name = self._label(ZODIAC_LABEL)
        if image_name is None:
            image_name = (self._info().get("Config") or {}).get("Image", "")
        if ":" not in image_name:
            image_name = f"{image_name}:latest"
        return image_name

    # --- label metadata ------------------------------------------------------

    def enabled(self) -> Optional[bool]:
        """Return the enable label's value, or None if it is unset or unparsable."""
        raw = self._label(ENABLE_LABEL)
        if raw is None:
            return None
        try:
            return _parse_bool(raw)
        except ValueError:
            return None

    def is_monitor_only(self) -> bool:
        """Return the monitor-only label's value, False if unset or unparsable."""
        raw = self._label(MONITOR_ONLY_LABEL)
        if raw is None:
            return False
        try:
            return _parse_bool(raw)
        except ValueError:
            return False

    def scope(self) -> Optional[str]:
        """Return the scope label's value, or None if it is not set."""
        return self._label(SCOPE_LABEL)

    def links(self) -> list[str]:
        """Return the names of the containers this container depends on."""
        depends_on = self._label_or_empty(DEPENDS_ON_LABEL)
        if depends_on:
            return depends_on.split(",")
        host_config = (self.container_info or {}).get("HostConfig")
        if not host_config:
            return []
        return [link.split(":")[0] for link in host_config.get("Links") or ()]

    def to_restart(self) -> bool:
        """Tell whether the container is stale or linked to a restarting one."""
        return self.stale or self.linked_to_restarting

    def is_watchtower(self) -> bool:
        """Tell whether this container is a watchtower instance."""
        return contains_watchtower_label(self._labels())

    def pre_update_timeout(self) -> int:
        """Return the pre-update command timeout in minutes (default 1, 0 = none)."""
        raw = self._label_or_empty(PRE_UPDATE_TIMEOUT_LABEL)
        if not _INTEGER.fullmatch(raw):
            return 1
        return int(raw)

    def stop_signal(self) -> str:
        """Return the custom stop signal, or an empty string."""
        return self._label_or_empty(SIGNAL_LABEL)

    def lifecycle_pre_check_command(self) -> str:
        """Return the pre-check command, or an empty string."""
        return self._label_or_empty(PRE_CHECK_LABEL)

    def lifecycle_post_check_command(self) -> str:
        """Return the post-check command, or an empty string."""
        return self._label_or_empty(POST_CHECK_LABEL)

    def lifecycle_pre_update_command(self) -> str:
        """Return the pre-update command, or an empty string."""
        return self._label_or_empty(PRE_UPDATE_LABEL)

    def lifecycle_post_update_command(self) -> str:
        """Return the post-update command, or an empty string."""
        return self._label_or_empty(POST_UPDATE_LABEL)

    def lifecycle_pre_check_user(self) -> str:
        """Return the pre-check user, or an empty string."""
        return self._label_or_empty(PRE_CHECK_USER_LABEL)

    def lifecycle_post_check_user(self) -> str:
        """Return the post-check user, or an empty string."""
        return self._label_or_empty(POST_CHECK_USER_LABEL)

    def lifecycle_pre_update_user(self) -> str:
        """Return the pre-update user, or an empty string."""
        return self._label_or_empty(PRE_UPDATE_USER_LABEL)

    def lifecycle_post_update_user(self) -> str:
        """Return the post-update user, or an empty string."""
        return self._label_or_empty(POST_UPDATE_USER_LABEL)

    # --- recreation ----------------------------------------------------------

    def runtime_config(self) -> dict[str, Any]:
        """Return the container config reduced to the options set at run time.

        Values that merely repeat the image's defaults are removed so that a
        new image's defaults are not overridden.
        """
        if self.image_info is None:
            raise NoImageInfoError()
        info = self._info()
        config = copy.deepcopy(info.get("Config") or {})
        host_config = info.get("HostConfig") or {}
        image_config = self.image_info.get("Config") or {}

        if config.get("WorkingDir", "") == image_config.get("WorkingDir", ""):
            config["WorkingDir"] = ""
        if config.get("User", "") == image_config.get("User", ""):
            config["User"] = ""
        if (host_config.get("NetworkMode") or "").startswith("container:"):
            config["Hostname"] = ""

        if slice_equal(config.get("Entrypoint"), image_config.get("Entrypoint")):
            config["Entrypoint"] = None
            if slice_equal(config.get("Cmd"), image_config.get("Cmd")):
                config["Cmd"] = None

        config["Env"] = slice_subtract(config.get("Env"), image_config.get("Env"))
        config["Labels"] = string_map_subtract(
            config.get("Labels"), image_config.get("Labels")
        )
        config["Volumes"] = struct_map_subtract(
            config.get("Volumes"), image_config.get("Volumes")
        )

        exposed = config.get("ExposedPorts")
        image_exposed = image_config.get("ExposedPorts") or {}
        bindings = host_config.get("PortBindings") or {}
        if exposed is not None or bindings:
            ports = {
                port: value
                for port, value in (exposed or {}).items()
                if port not in image_exposed
            }
            ports.update({port: {} for port in bindings})
            config["ExposedPorts"] = ports

        config["Image"] = self.image_name()
        return config

    def host_config(self) -> dict[str, Any]:
        """Return the host config with links rewritten for container creation."""
        host_config = copy.deepcopy(self._info().get("HostConfig") or {})
        links = host_config.get("Links")
        if links:
            rewritten = []
            for link in links:
                colon = link.find(":")
                slash = link.rfind("/")
                if colon < 0 or slash < 0:
                    raise InvalidConfigError(f"malformed link: {link!r}")
                rewritten.append(f"{link[:colon]}:{link[slash:]}")
            host_config["Links"] = rewritten
        return host_config

    def has_image_info(self) -> bool:
        """Tell whether image information is available."""
        return self.image_info is not None

    def verify_configuration(self) -> None:
        """Check that the container can be recreated; raise ContainerError if not."""
        if self.image_info is None:
            raise NoImageInfoError()
        info = self.container_info
        if info is None:
            raise InvalidConfigError()
        config = info.get("Config")
        if config is None:
            raise InvalidConfigError()
        host_config = info.get("HostConfig")
        if host_config is None:
            raise InvalidConfigError()
        if host_config.get("PortBindings") and config.get("ExposedPorts") is None:
            raise NoExposedPortsError()