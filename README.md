# shipwatch

shipwatch holds the building blocks of a tool that watches running
containers and recreates them when a newer version of their image has been
published. It works on the inspection data a container engine reports
(plain dictionaries shaped like the engine's inspect output) and leaves
every call to the engine to a client object that you supply.

## Modules

### `shipwatch.container`

`Container(container_info, image_info=None)` wraps a container's inspection
data and, optionally, that of its image. It has two writable attributes,
`stale` and `linked_to_restarting`; `to_restart()` is true when either is set.

- `id()`, `name()`, `is_running()`, `is_restarting()`
- `image_id()` (raises `NoImageInfoError` without image data),
  `safe_image_id()` (returns `""` instead), `has_image_info()`
- `image_name()` – taken from the `com.centurylinklabs.zodiac.original-image`
  label if present, otherwise from the config; `:latest` is appended when the
  name contains no `:`.
- Label metadata: `enabled()` (True/False, or None when the label is unset
  or not a boolean), `is_monitor_only()`, `scope()`, `is_watchtower()`,
  `stop_signal()`, `pre_update_timeout()` (minutes, 1 when unset or not an
  integer), and the `lifecycle_*_command()` / `lifecycle_*_user()` readers.
- `links()` – names from the `com.centurylinklabs.watchtower.depends-on`
  label (comma separated), otherwise the names in the host config's links.
- `runtime_config()` – a copy of the container config with everything that
  only repeats the image's defaults removed (working dir, user, entrypoint
  and command, environment, labels, volumes, exposed ports), port bindings
  added to the exposed ports, and `Image` set to `image_name()`.
- `host_config()` – a copy of the host config with links rewritten as
  `name:/alias`.
- `verify_configuration()` raises `NoImageInfoError`, `InvalidConfigError`
  or `NoExposedPortsError` (all subclasses of `ContainerError`) when the
  container could not be recreated safely.

The module also has `short_id()`, which shortens an ID to twelve characters
and drops a `sha256:` prefix (other prefixes are kept), and
`contains_watchtower_label()`.

### `shipwatch.flags`

The command-line options, with defaults read from environment variables
(`DOCKER_HOST`, `DOCKER_TLS_VERIFY`, `DOCKER_API_VERSION`, `WATCHTOWER_*`,
`NO_COLOR`). An empty variable counts as unset; `defaults()` lists the
built-in fallbacks, such as a poll interval of one day and a stop timeout
of ten seconds.

- `build_parser(environ=None)` returns an `argparse` parser with every
  option plus positional container names; `register_docker_flags()`,
  `register_system_flags()` and `register_notification_flags()` add each
  group to a parser of your own.
- `read_flags(options)` returns a `CommonFlags` tuple of `cleanup`,
  `no_restart`, `monitor_only` and `timeout` (a `timedelta`).
- `env_config(options, environ=None)` writes the host, TLS and API version
  options into the environment.
- `get_secrets_from_files(options)` replaces the password, hook URL and
  token options with the contents of the file they name, when they name an
  existing file.

### `shipwatch.api`

`Api(token)` routes requests to handlers registered with
`register(path, handler)`; a handler is called with the request body and
may return bytes to send back. Requests whose `Authorization` header is not
`Bearer <token>` get an empty answer and the handler is not called;
unknown paths get a 404. `dispatch()` handles one request without a server.
`start(block=False, port=8080)` serves over HTTP and returns the port, does
nothing and returns None when no handler is registered, and raises
`TokenMissingError` when the token is empty. `stop()` shuts the server down.

### `shipwatch.trigger`

`UpdateHandler(update_fn, lock=None)` has the path `/v1/update`. Its
`handle(body)` echoes the body to standard output and runs `update_fn`,
unless the lock is already held, in which case it returns False without
running it.

### `shipwatch.check`

- `check_for_sanity(client, filter_fn, rolling_restarts)` raises
  `SanityError` when rolling restarts are requested and a listed container
  depends on another one.
- `sort_by_created(containers)` orders containers from oldest to newest by
  their `Created` timestamp.
- `cleanup_excess_watchtowers(containers, client, cleanup)` stops every
  container except the newest, removes their images when `cleanup` is set,
  and raises `StopFailuresError` if any could not be stopped.

The client passed in needs `list_containers(filter_fn)`,
`stop_container(container, timeout)` and `remove_image_by_id(image_id)`.

### `shipwatch.util`

`slice_equal()`, `slice_subtract()`, `string_map_subtract()` and
`struct_map_subtract()` compare and subtract lists and mappings;
`rand_name()` returns a random 32-letter container name; `user_agent()`
returns `Watchtower/<version>`.

## Examples

```python
from shipwatch.container import Container, short_id

web = Container({"Id": "0123456789abcdef", "Name": "web",
                 "Config": {"Image": "nginx", "Labels": {}}})
web.image_name()   # 'nginx:latest'
short_id("sha256:0123456789abcd00000000001111111111222222222233333333334444444444")
# '0123456789ab'
```

```python
from shipwatch.flags import build_parser, read_flags

options = build_parser({}).parse_args(["--cleanup"])
read_flags(options)
# CommonFlags(cleanup=True, no_restart=False, monitor_only=False,
#             timeout=datetime.timedelta(seconds=10))
```

```python
import threading

from shipwatch.api import Api
from shipwatch.trigger import UpdateHandler


def run_update():
    print("checking for new images")


handler = UpdateHandler(run_update, threading.Lock())
api = Api("token")
api.register(handler.path, handler.handle)
port = api.start(block=False, port=8080)
# requests must carry "Authorization: Bearer token"
api.stop()
```

## What the package does not do

shipwatch does not talk to a container engine: there is no engine client,
so it does not list, pull, stop, create or start containers itself. It has
no scheduler, no update run that compares images and recreates containers,
no lifecycle hook execution, no notifications, no metrics endpoint and no
command-line program; `build_parser()` only parses the options.

## Running the tests

Install the package with its `test` extra and run `pytest` from the project
directory.