"""
Tests for InstanceConfig validation and loaders.
"""

from pathlib import Path

import pytest
import yaml

from cluster.config import InitialDatabase, InitialScript, InstanceConfig, Schema, env_overrides
from cluster.paths import EnvReference
from core.exceptions import ConfigurationError, InvalidConfigError, MissingConfigError


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def config_file(tmp_path):
    """YAML config with relative schema paths."""
    data = {
        "data_dir_env": "PGDATA",
        "socket_dir": str(tmp_path / "run"),
        "port": 5433,
        "superuser": "postgres",
        "initdb_args": "--locale=C --encoding UTF8",
        "default_settings": {"max_connections": 100},
        "settings": {"shared_buffers": "128MB"},
        "initial_databases": [
            {"name": "app", "schemas": ["schema", "/abs/extra.sql"]},
            "reporting",
        ],
        "initial_script": {"before": "CREATE ROLE app;"},
    }
    path = tmp_path / "instance.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


# ============================================================
# VALIDATION
# ============================================================

class TestValidation:

    def test_minimal(self):
        config = InstanceConfig(data_dir="/var/lib/pg")

        assert config.port == 5432
        assert config.admin_database == "postgres"
        assert config.initial_databases == ()
        assert config.initial_script == InitialScript()
        assert not config.create_database
        assert not config.refresh_config

    def test_data_dir_required(self):
        with pytest.raises(MissingConfigError):
            InstanceConfig()

    @pytest.mark.parametrize("port", [0, 65536, -1, True, "5432"])
    def test_invalid_port(self, port):
        with pytest.raises(InvalidConfigError):
            InstanceConfig(data_dir="/d", port=port)

    @pytest.mark.parametrize("key", ["start_timeout", "stop_timeout"])
    def test_timeouts_positive(self, key):
        with pytest.raises(InvalidConfigError):
            InstanceConfig(data_dir="/d", **{key: 0})

    @pytest.mark.parametrize("key", ["start_timeout", "stop_timeout"])
    @pytest.mark.parametrize("value", ["30", 2.5, True, None])
    def test_timeouts_must_be_integers(self, key, value):
        with pytest.raises(InvalidConfigError) as exc_info:
            InstanceConfig(data_dir="/d", **{key: value})

        assert exc_info.value.context["config_key"] == key

    def test_duplicate_database_names(self):
        with pytest.raises(InvalidConfigError):
            InstanceConfig(
                data_dir="/d",
                initial_databases=(InitialDatabase("app"), InitialDatabase("app")),
            )

    @pytest.mark.parametrize("name", ["", "x" * 64, "bad\x00name"])
    def test_invalid_database_name(self, name):
        with pytest.raises(InvalidConfigError):
            InitialDatabase(name)

    def test_quoted_names_are_allowed(self):
        assert InitialDatabase('my "odd" db').name == 'my "odd" db'

    def test_bad_setting_type_fails_early(self):
        with pytest.raises(InvalidConfigError):
            InstanceConfig(data_dir="/d", settings={"search_path": ["a", "b"]})


# ============================================================
# DIRECTORIES
# ============================================================

class TestDirectories:

    def test_socket_dir_defaults_to_data_dir(self):
        config = InstanceConfig(data_dir="/var/lib/pg")

        assert config.socket_directory == config.data_directory

    def test_env_indirection(self):
        config = InstanceConfig(data_dir_env="PGDATA", socket_dir_env="PGSOCK")

        assert config.data_directory.init_argument() == EnvReference("PGDATA")
        assert config.socket_directory.runtime_path() == EnvReference("PGSOCK")

    def test_with_overrides_ignores_none(self):
        config = InstanceConfig(data_dir="/d")

        assert config.with_overrides(port=None) is config

    def test_literal_override_clears_indirection(self):
        config = InstanceConfig(data_dir_env="PGDATA")

        updated = config.with_overrides(data_dir="/srv/pg", port=6543)

        assert updated.data_dir_env is None
        assert updated.data_directory.init_argument() == "/srv/pg"
        assert updated.port == 6543

    def test_with_overrides_validates(self):
        with pytest.raises(InvalidConfigError):
            InstanceConfig(data_dir="/d").with_overrides(port=70000)


# ============================================================
# LOADERS
# ============================================================

class TestFromDict:

    def test_unknown_keys_rejected(self):
        with pytest.raises(InvalidConfigError) as exc_info:
            InstanceConfig.from_dict({"data_dir": "/d", "datadir": "/e"})

        assert "datadir" in exc_info.value.context["actual_value"]

    def test_not_a_mapping(self):
        with pytest.raises(InvalidConfigError):
            InstanceConfig.from_dict(["data_dir"])

    def test_initdb_args_list(self):
        config = InstanceConfig.from_dict({"data_dir": "/d", "initdb_args": ["--locale", "C"]})

        assert config.initdb_args == ("--locale", "C")

    def test_scalar_database_list_rejected(self):
        with pytest.raises(InvalidConfigError) as exc_info:
            InstanceConfig.from_dict({"data_dir": "/d", "initial_databases": "app"})

        assert "expected a list" in exc_info.value.message

    def test_database_entry_without_name(self):
        with pytest.raises(InvalidConfigError):
            InstanceConfig.from_dict({"data_dir": "/d", "initial_databases": [{"schemas": []}]})

    def test_single_schema_string(self, tmp_path):
        config = InstanceConfig.from_dict(
            {"data_dir": "/d", "initial_databases": [{"name": "app", "schemas": "init.sql"}]},
            base_dir=tmp_path,
        )

        assert config.initial_databases[0].schemas == (Schema(tmp_path / "init.sql"),)


class TestFromYaml:

    def test_load(self, config_file, tmp_path):
        config = InstanceConfig.from_yaml(config_file)

        assert config.data_dir_env == "PGDATA"
        assert config.port == 5433
        assert config.initdb_args == ("--locale=C", "--encoding", "UTF8")
        assert [d.name for d in config.initial_databases] == ["app", "reporting"]
        assert config.initial_databases[0].schemas == (
            Schema(tmp_path / "schema"),
            Schema(Path("/abs/extra.sql")),
        )
        assert config.initial_databases[1].schemas == ()
        assert config.initial_script.before == "CREATE ROLE app;"
        assert config.initial_script.after is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            InstanceConfig.from_yaml(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("data_dir: [unclosed\n")

        with pytest.raises(ConfigurationError):
            InstanceConfig.from_yaml(path)

    def test_quoted_timeout(self, tmp_path):
        path = tmp_path / "instance.yaml"
        path.write_text("data_dir: /d\nstart_timeout: '30'\n")

        with pytest.raises(InvalidConfigError):
            InstanceConfig.from_yaml(path)

    def test_empty_file_lacks_data_dir(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        with pytest.raises(MissingConfigError):
            InstanceConfig.from_yaml(path)


class TestFromEnv:

    def test_load(self):
        config = InstanceConfig.from_env({
            "PGBOOT_DATA_DIR_ENV": "PGDATA",
            "PGBOOT_PORT": "5544",
            "PGBOOT_INITDB_ARGS": "--auth=trust --no-sync",
            "PGBOOT_CREATE_DATABASE": "yes",
            "PGBOOT_REFRESH_CONFIG": "0",
            "UNRELATED": "x",
        })

        assert config.data_dir_env == "PGDATA"
        assert config.port == 5544
        assert config.initdb_args == ("--auth=trust", "--no-sync")
        assert config.create_database is True
        assert config.refresh_config is False

    def test_bad_integer(self):
        with pytest.raises(InvalidConfigError):
            env_overrides({"PGBOOT_PORT": "fifty"})

    def test_bad_boolean(self):
        with pytest.raises(InvalidConfigError):
            env_overrides({"PGBOOT_CREATE_DATABASE": "maybe"})

    def test_empty_values_ignored(self):
        assert env_overrides({"PGBOOT_DATA_DIR": "", "PGBOOT_PORT": ""}) == {}
