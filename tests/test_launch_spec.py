import pytest

from mcptoolkit.config.models import MCPServerConfig
from mcptoolkit.errors import ConfigurationError
from mcptoolkit.mcp.launch import build_launch_spec, resolve_command


@pytest.mark.parametrize(
    "config",
    [
        {},
        {"command": ""},
        {"command": "   "},
        {"args": ["server.js"]},
        MCPServerConfig(),
    ],
)
def test_missing_command_is_a_configuration_error(config):
    with pytest.raises(ConfigurationError):
        build_launch_spec(config, base_env={})


def test_non_mapping_config_is_rejected():
    with pytest.raises(ConfigurationError):
        build_launch_spec(["npx", "server"])


def test_invalid_field_types_are_configuration_errors():
    with pytest.raises(ConfigurationError):
        build_launch_spec({"command": "node", "env": "A=1"}, base_env={})


def test_env_overrides_win_over_inherited_env():
    spec = build_launch_spec(
        {"command": "node", "env": {"B": "3", "C": "4"}},
        base_env={"A": "1", "B": "2"},
    )
    assert spec.env == {"A": "1", "B": "3", "C": "4"}


def test_inherits_process_environment_by_default(monkeypatch):
    monkeypatch.setenv("MCPTOOLKIT_TEST_INHERITED", "yes")
    spec = build_launch_spec({"command": "node"})
    assert spec.env["MCPTOOLKIT_TEST_INHERITED"] == "yes"


def test_args_default_to_empty_and_keep_order():
    assert build_launch_spec({"command": "node"}, base_env={}).args == []
    spec = build_launch_spec({"command": "node", "args": ["b", "a", "c"]}, base_env={})
    assert spec.args == ["b", "a", "c"]
    assert spec.argv() == ["node", "b", "a", "c"]


def test_npx_resolves_to_cmd_shim_on_windows_only():
    cfg = {"command": "npx", "args": ["-y", "server"]}
    assert build_launch_spec(cfg, platform="win32", base_env={}).command == "npx.cmd"
    assert build_launch_spec(cfg, platform="linux", base_env={}).command == "npx"
    assert build_launch_spec(cfg, platform="darwin", base_env={}).command == "npx"


def test_other_commands_pass_through_on_windows():
    assert resolve_command("node", platform="win32") == "node"
    assert resolve_command("uvx", platform="win32") == "uvx"


def test_model_and_mapping_configs_are_equivalent():
    as_model = MCPServerConfig(command="node", args=["x"], env={"K": "V"}, cwd="/tmp")
    as_dict = {"command": "node", "args": ["x"], "env": {"K": "V"}, "cwd": "/tmp"}
    assert build_launch_spec(as_model, base_env={}) == build_launch_spec(as_dict, base_env={})
