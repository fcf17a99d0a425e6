"""Sanity checks run before updating, and cleanup of extra watchtower instances."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

from shipwatch.container import Container

log = logging.getLogger(__name__)

WATCHTOWER_STOP_TIMEOUT = timedelta(minutes=10)

_CREATED = re.compile(
    r"(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>Z|[+-]\d{2}:\d{2})"
)


class SanityError(Exception):
    """The configuration cannot work with the containers found."""


class StopFailuresError(Exception):
    """One or more watchtower containers could not be stopped."""

    def __init__(self, count: int) -> None:
        super().__init__(f"{count} errors while stopping watchtower containers")
        self.count = count


def check_for_sanity(
    client: Any, filter_fn: Callable[[Container], bool], rolling_restarts: bool
) -> None:
    """Make sure everything is sane before starting; raise SanityError if not."""
    log.debug("Making sure everything is sane before starting")
    if not rolling_restarts:
        return
    for container in client.list_containers(filter_fn):
        if container.links():
            raise SanityError(
                f'"{container.name()}" is depending on at least one other container. '
                "This is not compatible with rolling restarts"
            )


def _created_at(container: Container, now: datetime) -> datetime:
    raw = ((container.container_info or {}).get("Created") or "").strip()
    match = _CREATED.fullmatch(raw)
    if match is None:
        return now
    fraction = (match["frac"] or "")[:6].ljust(6, "0")
    zone = "+00:00" if match["tz"] == "Z" else match["tz"]
    try:
        return datetime.fromisoformat(f"{match['base']}.{fraction}{zone}")
    except ValueError:
        return now


def sort_by_created(containers: Iterable[Container]) -> list[Container]:
    """Return the containers ordered from oldest to newest.

    A container whose creation time cannot be read counts as created now.
    """
    now = datetime.now(timezone.utc)
    return sorted(containers, key=lambda c: _created_at(c, now))


def cleanup_excess_watchtowers(
    containers: Iterable[Container], client: Any, cleanup: bool
) -> None:
    """Stop every watchtower container except the most recently created one.

    With ``cleanup`` the images of the stopped containers are removed too.
    Raises StopFailuresError when some containers could not be stopped.
    """
    ordered = sort_by_created(containers)
    stop_errors = 0
    for container in ordered[:-1]:
        try:
            client.stop_container(container, WATCHTOWER_STOP_TIMEOUT)
        except Exception:
            log.exception("Could not stop a previous watchtower instance.")
            stop_errors += 1
            continue
        if cleanup:
            try:
                client.remove_image_by_id(container.image_id())
            except Exception as exc:
                log.warning(
                    "Could not cleanup watchtower images, possibly because of other "
                    "watchtowers instances in other scopes: %s",
                    exc,
                )
    if stop_errors:
        raise StopFailuresError(stop_errors)