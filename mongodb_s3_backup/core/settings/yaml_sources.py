"""Custom YAML config source with conf.d directory support.

Extends pydantic-settings YamlConfigSettingsSource to support:
- Main YAML file (e.g., conf/mongodb.yaml)
- conf.d directory merging (e.g., conf/mongodb.d/*.yaml)
- Alphabetical file ordering in conf.d
- JSON files in conf.d (JSON is valid YAML)

Older deployments used a single JSON config file with ``mongodb`` and
``s3`` sections; each section saved as its own file under
``conf/mongodb.d/`` or ``conf/s3.d/`` loads unchanged.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic_settings import YamlConfigSettingsSource

if TYPE_CHECKING:
    from pydantic_settings import BaseSettings

SHARED_CONFIG_DIR_ENV = "CONFIG_DIR"


class ConfDYamlConfigSettingsSource(YamlConfigSettingsSource):
    """YAML settings source with conf.d directory support.

    Supports the standard Linux conf.d pattern:
    - conf/s3.yaml        (base configuration)
    - conf/s3.d/*.yaml    (override files, merged alphabetically)

    The base directory is resolved from, in order: the domain-specific
    environment variable (e.g. ``S3_CONFIG_DIR``), the shared ``CONFIG_DIR``
    variable, then ``conf`` relative to the working directory.
    """

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        yaml_file: str,
        confd_dir: str | None,
        config_dir_env: str,
        base_dir: str = "conf",
        yaml_file_encoding: str | None = "utf-8",
    ) -> None:
        """Initialize the conf.d YAML source.

        Args:
            settings_cls: The settings class being configured.
            yaml_file: Main YAML file name (e.g., "s3.yaml").
            confd_dir: conf.d subdirectory name (e.g., "s3.d"), or None to disable.
            config_dir_env: Environment variable to override base directory.
            base_dir: Default base directory for config files.
            yaml_file_encoding: File encoding for YAML files.
        """
        config_base = Path(
            os.getenv(config_dir_env) or os.getenv(SHARED_CONFIG_DIR_ENV) or base_dir
        )

        yaml_files: list[Path] = []

        main_file = config_base / yaml_file
        if main_file.exists():
            yaml_files.append(main_file)

        if confd_dir:
            confd_path = config_base / confd_dir
            if confd_path.is_dir():
                yaml_files.extend(sorted(confd_path.glob("*.yaml")))
                yaml_files.extend(sorted(confd_path.glob("*.yml")))
                yaml_files.extend(sorted(confd_path.glob("*.json")))

        self._yaml_files = yaml_files

        super().__init__(
            settings_cls=settings_cls,
            yaml_file=yaml_files if yaml_files else None,
            yaml_file_encoding=yaml_file_encoding,
        )

    @property
    def yaml_files(self) -> list[Path]:
        """Files this source read, in merge order."""
        return list(self._yaml_files)

    def __repr__(self) -> str:
        files_str = ", ".join(str(f) for f in self._yaml_files)
        return f"{self.__class__.__name__}(yaml_files=[{files_str}])"


def create_yaml_source(
    settings_cls: type[BaseSettings], name: str, env_prefix: str
) -> ConfDYamlConfigSettingsSource:
    """Create the conf.d YAML source for one settings domain.

    Loads ``conf/<name>.yaml`` then ``conf/<name>.d/*``. Override the
    directory with ``<ENV_PREFIX>CONFIG_DIR`` or ``CONFIG_DIR``.
    """
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file=f"{name}.yaml",
        confd_dir=f"{name}.d",
        config_dir_env=f"{env_prefix}CONFIG_DIR",
    )


def create_mongodb_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """Create YAML source for MongoDBSettings (conf/mongodb.yaml, conf/mongodb.d/)."""
    return create_yaml_source(settings_cls, "mongodb", "MONGODB_")


def create_s3_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """Create YAML source for S3Settings (conf/s3.yaml, conf/s3.d/)."""
    return create_yaml_source(settings_cls, "s3", "S3_")


def create_backup_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """Create YAML source for BackupSettings (conf/backup.yaml, conf/backup.d/)."""
    return create_yaml_source(settings_cls, "backup", "BACKUP_")


def create_logging_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """Create YAML source for LoggingSettings (conf/logging.yaml, conf/logging.d/)."""
    return create_yaml_source(settings_cls, "logging", "LOG_")
