"""Application configuration"""

import os
from typing import Dict, List, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

DEFAULT_CONFIG_FILE = "config.toml"


class RepoConfig(BaseModel):
    """Binds one GitHub repository to one Jira project"""

    model_config = ConfigDict(frozen=True)

    github_owner: str = ""
    jira_project: str = ""
    jira_issuetype: str = ""
    # Default (and allowed) component list for new issues
    jira_components: List[str] = Field(default_factory=list)
    issuetype_label_map: Dict[str, str] = Field(default_factory=dict)
    component_label_map: Dict[str, str] = Field(default_factory=dict)
    # Transition name ("Done", "To Do") -> ordered transition ids
    transition_map: Dict[str, List[str]] = Field(default_factory=dict)


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Database (watermark + sync logs)
    database_url: str = "sqlite:///./issuesync.db"

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Logging
    log_level: str = "INFO"

    # GitHub
    github_token: str | None = None
    github_base_url: str = "https://api.github.com"
    # When set, webhook deliveries must carry a valid X-Hub-Signature-256.
    webhook_secret: str | None = None

    # Jira
    jira_base_url: str = ""
    jira_username: str = ""
    jira_password: str = ""

    # Reconciliation
    do_presync: bool = True
    use_last_sync_time: bool = False
    # 0 disables periodic reconciliation; the startup pass still runs.
    reconcile_interval_minutes: int = 0
    reconcile_max_workers: int = 32

    # Assigned/labeled events may arrive before the "opened" event's issue exists.
    creation_wait_attempts: int = 5
    creation_wait_base_delay_s: float = 1.0

    # Formatting
    # External GitHub-markdown -> Jira-markup converter (stdin -> stdout), e.g. "./markdown.rb".
    markdown_converter_cmd: str | None = None
    markdown_converter_timeout_s: float = 30.0
    display_timezone: str = "Asia/Shanghai"

    # Repository name -> repository sync configuration
    repos: Dict[str, RepoConfig] = Field(default_factory=dict)

    # Jira project key -> version names
    fix_versions: Dict[str, List[str]] = Field(default_factory=dict)
    affects_versions: Dict[str, List[str]] = Field(default_factory=dict)
    # GitHub login -> Jira user name
    assignee_map: Dict[str, str] = Field(default_factory=dict)
    # Jira project keys whose issues carry the "GitHub URL" custom field
    source_url_projects: List[str] = Field(default_factory=list)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # Environment overrides the TOML file.
        toml_file = os.environ.get("CONFIG_FILE", DEFAULT_CONFIG_FILE)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            file_secret_settings,
        )

    def validate_required(self) -> None:
        """Raise if the Jira connection settings are missing."""
        if not self.jira_base_url:
            raise RuntimeError("JIRA base URL should be given")
        if not self.jira_username:
            raise RuntimeError("JIRA username should be given")
        if not self.jira_password:
            raise RuntimeError("JIRA password should be given")


settings = Settings()
