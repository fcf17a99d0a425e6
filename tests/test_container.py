import pytest

from shipwatch.container import (
    Container,
    ContainerError,
    InvalidConfigError,
    NoExposedPortsError,
    NoImageInfoError,
    contains_watchtower_label,
    short_id,
)


def mock_container_with_labels(labels):
    content = {
        "Id": "container_id",
        "Image": "image",
        "Name": "test-containrrr",
        "Config": {"Labels": labels},
    }
    return Container(content, None)


def mock_container_with_port_bindings(*sources):
    container = mock_container_with_labels(None)
    container.image_info = {}
    container.container_info["HostConfig"] = {
        "PortBindings": {source: [] for source in sources}
    }
    return container


def mock_container_with_image_name(name):
    container = mock_container_with_labels(None)
    container.container_info["Config"]["Image"] = name
    return container


def mock_container_with_links(links):
    content = {
        "Id": "container_id",
        "Image": "image",
        "Name": "test-containrrr",
        "HostConfig": {"Links": links},
        "Config": {"Labels": {}},
    }
    return Container(content, None)


@pytest.fixture
def enabled_watchtower():
    return mock_container_with_labels(
        {
            "com.centurylinklabs.watchtower.enable": "true",
            "com.centurylinklabs.watchtower": "true",
        }
    )


# --- verify_configuration ---------------------------------------------------


def test_verify_no_image_info():
    c = mock_container_with_port_bindings()
    c.image_info = None
    with pytest.raises(NoImageInfoError):
        c.verify_configuration()


def test_verify_no_container_info():
    c = mock_container_with_port_bindings()
    c.container_info = None
    with pytest.raises(InvalidConfigError):
        c.verify_configuration()


def test_verify_no_config():
    c = mock_container_with_port_bindings()
    c.container_info["Config"] = None
    with pytest.raises(InvalidConfigError):
        c.verify_configuration()


def test_verify_no_host_config():
    c = mock_container_with_port_bindings()
    c.container_info["HostConfig"] = None
    with pytest.raises(InvalidConfigError):
        c.verify_configuration()


def test_verify_no_port_bindings_passes():
    c = mock_container_with_port_bindings()
    assert c.verify_configuration() is None


def test_verify_port_bindings_without_exposed_ports():
    c = mock_container_with_port_bindings("80/tcp")
    c.container_info["Config"]["ExposedPorts"] = None
    with pytest.raises(NoExposedPortsError):
        c.verify_configuration()


def test_verify_port_bindings_with_exposed_ports():
    c = mock_container_with_port_bindings("80/tcp")
    c.container_info["Config"]["ExposedPorts"] = {"80/tcp": {}}
    assert c.verify_configuration() is None


def test_errors_share_base_and_messages():
    assert issubclass(NoImageInfoError, ContainerError)
    assert str(NoImageInfoError()) == "no available image info"
    assert str(NoExposedPortsError()) == "exposed ports does not match port bindings"
    assert str(InvalidConfigError()) == "container configuration missing or invalid"


# --- metadata ---------------------------------------------------------------


def test_name(enabled_watchtower):
    assert enabled_watchtower.name() == "test-containrrr"


def test_id(enabled_watchtower):
    assert enabled_watchtower.id() == "container_id"


def test_enabled_true(enabled_watchtower):
    assert enabled_watchtower.enabled() is True


def test_enabled_false_when_present():
    c = mock_container_with_labels({"com.centurylinklabs.watchtower.enable": "false"})
    assert c.enabled() is False


def test_enabled_none_when_absent():
    c = mock_container_with_labels({"lol": "false"})
    assert c.enabled() is None


def test_enabled_none_when_unparsable():
    c = mock_container_with_labels({"com.centurylinklabs.watchtower.enable": "falsy"})
    assert c.enabled() is None


def test_is_watchtower_true(enabled_watchtower):
    assert enabled_watchtower.is_watchtower() is True


@pytest.mark.parametrize(
    "labels",
    [{"com.centurylinklabs.watchtower": "false"}, {"funny.label": "false"}, {}],
)
def test_is_watchtower_false(labels):
    assert mock_container_with_labels(labels).is_watchtower() is False


def test_contains_watchtower_label():
    assert contains_watchtower_label({"com.centurylinklabs.watchtower": "true"}) is True
    assert contains_watchtower_label(None) is False


def test_stop_signal_set():
    c = mock_container_with_labels({"com.centurylinklabs.watchtower.stop-signal": "SIGKILL"})
    assert c.stop_signal() == "SIGKILL"


def test_stop_signal_unset():
    assert mock_container_with_labels({}).stop_signal() == ""


def test_image_name_from_zodiac_label():
    c = mock_container_with_labels(
        {"com.centurylinklabs.zodiac.original-image": "the-original-image"}
    )
    assert c.image_name() == "the-original-image:latest"


def test_image_name_with_tag():
    assert mock_container_with_image_name("image-name:3").image_name() == "image-name:3"


def test_image_name_assumes_latest():
    assert mock_container_with_image_name("image-name").image_name() == "image-name:latest"


def test_links_from_depends_on_single():
    c = mock_container_with_labels({"com.centurylinklabs.watchtower.depends-on": "postgres"})
    assert c.links() == ["postgres"]


def test_links_from_depends_on_many():
    c = mock_container_with_labels(
        {"com.centurylinklabs.watchtower.depends-on": "postgres,redis"}
    )
    assert sorted(c.links()) == ["postgres", "redis"]


def test_links_blank_depends_on():
    c = mock_container_with_labels({"com.centurylinklabs.watchtower.depends-on": ""})
    assert c.links() == []


def test_links_from_host_config():
    c = mock_container_with_links(["redis:test-containrrr", "postgres:test-containrrr"])
    assert sorted(c.links()) == ["postgres", "redis"]


def test_monitor_only_and_scope():
    c = mock_container_with_labels(
        {
            "com.centurylinklabs.watchtower.monitor-only": "true",
            "com.centurylinklabs.watchtower.scope": "prod",
        }
    )
    assert c.is_monitor_only() is True
    assert c.scope() == "prod"
    plain = mock_container_with_labels({"com.centurylinklabs.watchtower.monitor-only": "nah"})
    assert plain.is_monitor_only() is False
    assert plain.scope() is None


@pytest.mark.parametrize(
    "value, expected",
    [("190", 190), ("0", 0), ("", 1), ("abc", 1), (None, 1)],
)
def test_pre_update_timeout(value, expected):
    labels = {}
    if value is not None:
        labels["com.centurylinklabs.watchtower.lifecycle.pre-update-timeout"] = value
    assert mock_container_with_labels(labels).pre_update_timeout() == expected


def test_lifecycle_labels():
    prefix = "com.centurylinklabs.watchtower.lifecycle."
    c = mock_container_with_labels(
        {
            prefix + "pre-check": "pc",
            prefix + "post-check": "poc",
            prefix + "pre-update": "pu",
            prefix + "post-update": "pou",
            prefix + "pre-check.user": "u1",
            prefix + "post-check.user": "u2",
            prefix + "pre-update.user": "u3",
            prefix + "post-update.user": "u4",
        }
    )
    assert c.lifecycle_pre_check_command() == "pc"
    assert c.lifecycle_post_check_command() == "poc"
    assert c.lifecycle_pre_update_command() == "pu"
    assert c.lifecycle_post_update_command() == "pou"
    assert c.lifecycle_pre_check_user() == "u1"
    assert c.lifecycle_post_check_user() == "u2"
    assert c.lifecycle_pre_update_user() == "u3"
    assert c.lifecycle_post_update_user() == "u4"
    assert mock_container_with_labels({}).lifecycle_pre_update_command() == ""


def test_running_restarting_and_to_restart():
    c = mock_container_with_labels({})
    c.container_info["State"] = {"Running": True, "Restarting": False}
    assert c.is_running() is True
    assert c.is_restarting() is False
    assert c.to_restart() is False
    c.linked_to_restarting = True
    assert c.to_restart() is True


def test_image_ids():
    c = mock_container_with_labels({})
    assert c.safe_image_id() == ""
    assert c.has_image_info() is False
    with pytest.raises(NoImageInfoError):
        c.image_id()
    c.image_info = {"Id": "sha256:abc"}
    assert c.image_id() == "sha256:abc"
    assert c.safe_image_id() == "sha256:abc"
    assert c.has_image_info() is True


# --- recreation -------------------------------------------------------------


def test_runtime_config_strips_image_defaults():
    container_info = {
        "Id": "cid",
        "Name": "web",
        "Config": {
            "Image": "nginx",
            "WorkingDir": "/app",
            "User": "someone",
            "Hostname": "host",
            "Entrypoint": ["/entry"],
            "Cmd": ["run"],
            "Env": ["A=1", "PATH=/bin"],
            "Labels": {"keep": "1", "same": "x"},
            "Volumes": {"/data": {}, "/image": {}},
            "ExposedPorts": {"80/tcp": {}, "443/tcp": {}},
        },
        "HostConfig": {"NetworkMode": "container:other", "PortBindings": {"8080/tcp": []}},
    }
    image_info = {
        "Id": "sha256:img",
        "Config": {
            "WorkingDir": "/app",
            "User": "root",
            "Entrypoint": ["/entry"],
            "Cmd": ["run"],
            "Env": ["PATH=/bin"],
            "Labels": {"same": "x"},
            "Volumes": {"/image": {}},
            "ExposedPorts": {"80/tcp": {}},
        },
    }
    c = Container(container_info, image_info)
    config = c.runtime_config()
    assert config["WorkingDir"] == ""
    assert config["User"] == "someone"
    assert config["Hostname"] == ""
    assert config["Entrypoint"] is None
    assert config["Cmd"] is None
    assert config["Env"] == ["A=1"]
    assert config["Labels"] == {"keep": "1"}
    assert config["Volumes"] == {"/data": {}}
    assert config["ExposedPorts"] == {"443/tcp": {}, "8080/tcp": {}}
    assert config["Image"] == "nginx:latest"
    assert container_info["Config"]["WorkingDir"] == "/app"


def test_runtime_config_keeps_cmd_when_entrypoint_differs():
    container_info = {
        "Config": {"Image": "app:1", "Entrypoint": ["/a"], "Cmd": ["x"]},
        "HostConfig": {},
    }
    image_info = {"Config": {"Entrypoint": ["/b"], "Cmd": ["x"]}}
    config = Container(container_info, image_info).runtime_config()
    assert config["Entrypoint"] == ["/a"]
    assert config["Cmd"] == ["x"]


def test_runtime_config_requires_image_info():
    with pytest.raises(NoImageInfoError):
        mock_container_with_labels({}).runtime_config()


def test_host_config_rewrites_links():
    c = mock_container_with_links(["/db:/web/db"])
    assert c.host_config()["Links"] == ["/db:/db"]
    assert c.container_info["HostConfig"]["Links"] == ["/db:/web/db"]


def test_host_config_malformed_link():
    c = mock_container_with_links(["nocolon"])
    with pytest.raises(InvalidConfigError):
        c.host_config()


# --- short ids --------------------------------------------------------------


@pytest.mark.parametrize(
    "identifier, expected",
    [
        ("sha256:0123456789abcd00000000001111111111222222222233333333334444444444", "0123456789ab"),
        ("0123456789abcd00000000001111111111222222222233333333334444444444", "0123456789ab"),
        ("0123456789ab", "0123456789ab"),
        ("sha256:0123456789ab", "0123456789ab"),
        ("md5:0123456789ab", "md5:0123456789ab"),
        ("md5:0123456789abcdefg", "md5:0123456789ab"),
        ("md5:01", "md5:01"),
    ],
)
def test_short_id(identifier, expected):
    assert short_id(identifier) == expected