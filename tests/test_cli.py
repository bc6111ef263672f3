import pytest
from typer.testing import CliRunner

from wick.client import wick_cli
from wick.client.controller import SessionController
from wick.client.state import InvocationPolicy
from wick.shared.errors import RouterConnectionError

runner = CliRunner()

SEED_HEX = "9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60"


class RecordingController:
    """Replaces SessionController so no router is needed"""

    instances = []
    fail_with = None

    def __init__(self, *, console=None, logger=None):
        self.calls = []
        RecordingController.instances.append(self)

    async def _record(self, *call):
        self.calls.append(call)
        if RecordingController.fail_with is not None:
            raise RecordingController.fail_with
        return 0

    def subscribe(self, url, config, topic, *, match, print_details):
        return self._record("subscribe", url, config, topic, match, print_details)

    def publish(self, url, config, topic, args, kwargs):
        return self._record("publish", url, config, topic, args, kwargs)

    def register(self, url, config, procedure, policy):
        return self._record("register", url, config, procedure, policy)

    def call(self, url, config, procedure, args, kwargs):
        return self._record("call", url, config, procedure, args, kwargs)


@pytest.fixture(autouse=True)
def recording_controller(monkeypatch):
    RecordingController.instances = []
    RecordingController.fail_with = None
    monkeypatch.setattr(wick_cli, "SessionController", RecordingController)
    for name in ("WICK_URL", "WICK_REALM", "WICK_TICKET", "WICK_SECRET", "WICK_PRIVATE_KEY", "WICK_PROFILE"):
        monkeypatch.delenv(name, raising=False)
    return RecordingController


def only_call():
    assert len(RecordingController.instances) == 1
    (call,) = RecordingController.instances[0].calls
    return call


def test_publish_passes_raw_arguments():
    result = runner.invoke(wick_cli.app, ["--realm", "r", "publish", "com.t", "1", "x", "-k", "a=b", "-k", "n=2"])
    assert result.exit_code == 0, result.output

    action, url, config, topic, args, kwargs = only_call()
    assert action == "publish"
    assert url == "ws://localhost:8080/ws"
    assert config.realm == "r"
    assert config.authmethods == ["anonymous"]
    assert topic == "com.t"
    assert args == ["1", "x"]
    assert kwargs == {"a": "b", "n": "2"}


def test_conflicting_credentials_exit_before_connecting():
    result = runner.invoke(wick_cli.app, ["--ticket", "t", "--secret", "s", "call", "p"])
    assert result.exit_code == 2
    assert RecordingController.instances == []


def test_short_private_key_exits_before_connecting():
    result = runner.invoke(wick_cli.app, ["--private-key", "ab" * 31, "subscribe", "t"])
    assert result.exit_code == 2
    assert RecordingController.instances == []


def test_cryptosign_config_from_env():
    result = runner.invoke(wick_cli.app, ["call", "p"], env={"WICK_PRIVATE_KEY": SEED_HEX, "WICK_URL": "rs://h:1"})
    assert result.exit_code == 0, result.output

    _, url, config, *_ = only_call()
    assert url == "rs://h:1"
    assert config.authmethods == ["cryptosign"]
    assert "pubkey" in config.authextra


def test_malformed_kwarg_is_configuration_error():
    result = runner.invoke(wick_cli.app, ["call", "p", "-k", "novalue"])
    assert result.exit_code == 2


def test_register_builds_invocation_policy():
    result = runner.invoke(
        wick_cli.app,
        ["register", "com.p", "echo a", "echo b", "--shell", "sh", "--invoke-count", "2", "--delay", "1.5"],
    )
    assert result.exit_code == 0, result.output

    action, _, _, procedure, policy = only_call()
    assert action == "register"
    assert procedure == "com.p"
    assert policy == InvocationPolicy(invoke_count=2, delay=1.5, commands=["echo a", "echo b"], shell="sh")


def test_subscribe_match_option():
    result = runner.invoke(wick_cli.app, ["subscribe", "com.", "--match", "prefix", "--details"])
    assert result.exit_code == 0, result.output
    assert only_call()[3:] == ("com.", "prefix", True)


def test_subscribe_rejects_unknown_match():
    result = runner.invoke(wick_cli.app, ["subscribe", "t", "--match", "regex"])
    assert result.exit_code != 0
    assert RecordingController.instances == []


def test_connection_error_maps_to_exit_code():
    RecordingController.fail_with = RouterConnectionError("router unreachable")
    result = runner.invoke(wick_cli.app, ["publish", "t"])
    assert result.exit_code == 3


def test_profile_is_applied(tmp_path):
    (tmp_path / ".wick").mkdir()
    (tmp_path / ".wick" / "config.yaml").write_text(
        "work:\n  url: wss://router.example.com/ws\n  realm: prod\n  authmethod: ticket\n  ticket: abc\n"
    )
    result = runner.invoke(wick_cli.app, ["--profile", "work", "call", "p"], env={"XDG_CONFIG_HOME": str(tmp_path)})
    assert result.exit_code == 0, result.output

    _, url, config, *_ = only_call()
    assert url == "wss://router.example.com/ws"
    assert config.realm == "prod"
    assert config.authmethods == ["ticket"]


@pytest.mark.parametrize("action", ["publish", "call"])
def test_reserved_kwarg_exits_with_configuration_error(monkeypatch, action):
    # the real controller: a connection attempt would end with exit 3
    monkeypatch.setattr(wick_cli, "SessionController", SessionController)
    result = runner.invoke(wick_cli.app, [action, "x", "-k", "options=1"])
    assert result.exit_code == 2


def test_invoke_count_help_states_exit_status():
    result = runner.invoke(wick_cli.app, ["register", "--help"], env={"COLUMNS": "250", "TERMINAL_WIDTH": "250"})
    assert result.exit_code == 0
    assert "status 0" in result.output
