from pathlib import Path

import pytest

from liftoff.config import (
    DEFAULT_TEMPLATE_URL,
    DeploymentConfig,
    _deep_merge,
    load_config,
    load_raw_config,
)
from liftoff.core.exceptions import ConfigurationError
from liftoff.settings import DEFAULT_SETTINGS_PATH

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]


class TestDeepMerge:
    def test_shallow_override(self):
        assert _deep_merge({"a": 1, "b": 2}, {"b": 3}) == {"a": 1, "b": 3}

    def test_nested_merge(self):
        base = {"deployment": {"stack_name": "A", "poll_interval": 5}}
        override = {"deployment": {"poll_interval": 10}}
        assert _deep_merge(base, override) == {"deployment": {"stack_name": "A", "poll_interval": 10}}

    def test_empty_base(self):
        assert _deep_merge({}, {"a": 1}) == {"a": 1}

    def test_empty_override(self):
        assert _deep_merge({"a": 1}, {}) == {"a": 1}


class TestLoadConfig:
    def test_no_files_gives_defaults(self, tmp_path: Path):
        config = load_config(project_dir=tmp_path / "nope", global_path=tmp_path / "nope.toml")

        assert config.deployment == DeploymentConfig()
        assert config.settings_path == DEFAULT_SETTINGS_PATH
        assert config.aws.template_url == DEFAULT_TEMPLATE_URL
        assert config.logging is None

    def test_project_overrides_global(self, tmp_path: Path):
        global_toml = tmp_path / "defaults.toml"
        global_toml.write_text('[deployment]\nstack_name = "Shared"\npoll_interval = 10\n')
        project = tmp_path / "project"
        project.mkdir()
        (project / "liftoff.toml").write_text("[deployment]\npoll_interval = 2.5\n")

        config = load_config(project_dir=project, global_path=global_toml)

        assert config.deployment.stack_name == "Shared"
        assert config.deployment.poll_interval == 2.5

    def test_all_sections(self, tmp_path: Path):
        (tmp_path / "liftoff.toml").write_text(
            "[settings]\n"
            f'path = "{(tmp_path / "s.json").as_posix()}"\n'
            "\n"
            "[deployment]\n"
            'game_name = "Asteroids"\n'
            "client_settings_interval = 1\n"
            "\n"
            "[aws]\n"
            f'credentials_file = "{(tmp_path / "credentials").as_posix()}"\n'
            "\n"
            "[logging]\n"
            'level = "DEBUG"\n'
            "console = false\n"
            f'file = "{(tmp_path / "liftoff.log").as_posix()}"\n'
        )

        config = load_config(project_dir=tmp_path, global_path=tmp_path / "none.toml")

        assert config.settings_path == tmp_path / "s.json"
        assert config.deployment.game_name == "Asteroids"
        assert config.deployment.client_settings_interval == 1.0
        assert config.aws.credentials_file == tmp_path / "credentials"
        assert config.aws.config_file is None
        assert config.logging is not None
        assert config.logging.level == "DEBUG"
        assert config.logging.console is False
        assert config.logging.file == tmp_path / "liftoff.log"

    def test_raw_config_merges(self, tmp_path: Path):
        (tmp_path / "liftoff.toml").write_text('[aws]\ntemplate_url = "https://example.com/t.yml"\n')
        raw = load_raw_config(project_dir=tmp_path, global_path=tmp_path / "none.toml")
        assert raw == {"aws": {"template_url": "https://example.com/t.yml"}}


class TestInvalidConfig:
    def _load(self, tmp_path: Path, text: str):
        (tmp_path / "liftoff.toml").write_text(text)
        return load_config(project_dir=tmp_path, global_path=tmp_path / "none.toml")

    def test_bad_toml(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            self._load(tmp_path, "[deployment\n")

    def test_unknown_section(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="pools"):
            self._load(tmp_path, "[pools.dev]\nnodes = 1\n")

    def test_unknown_deployment_key(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="region"):
            self._load(tmp_path, '[deployment]\nregion = "us-east-1"\n')

    @pytest.mark.parametrize("value", ["0", "-1", "true", '"fast"'])
    def test_non_positive_interval(self, tmp_path: Path, value: str):
        with pytest.raises(ConfigurationError, match="poll_interval"):
            self._load(tmp_path, f"[deployment]\npoll_interval = {value}\n")

    def test_unknown_logging_key(self, tmp_path: Path):
        with pytest.raises(ConfigurationError):
            self._load(tmp_path, '[logging]\ncolour = "always"\n')

    def test_unknown_logging_level(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="level"):
            self._load(tmp_path, '[logging]\nlevel = "VERBOSE"\n')
