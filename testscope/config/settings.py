from pydantic_settings import BaseSettings
from typing import Dict, Optional


class Settings(BaseSettings):
    # API Configuration
    debug: bool = False
    environment: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 3002
    api_prefix: str = "/api/v1"

    # JIRA Integration (configure via environment)
    jira_base_url: Optional[str] = None
    jira_username: Optional[str] = None
    jira_api_token: Optional[str] = None

    # Bitbucket Integration
    # Cloud is detected from "bitbucket.org" in the base url, anything else is Server/Data Center
    bitbucket_base_url: str = "https://bitbucket.org"
    bitbucket_username: Optional[str] = None
    bitbucket_password: Optional[str] = None
    # Repository searched for PRs mentioning a ticket id
    # (project key on Server, workspace on Cloud)
    bitbucket_project_key: Optional[str] = None
    bitbucket_repo_slug: Optional[str] = None

    # TestRail Integration
    testrail_base_url: Optional[str] = None
    testrail_username: Optional[str] = None
    testrail_api_key: Optional[str] = None
    testrail_project_id: int = 1
    testrail_suite_id: int = 1
    testrail_page_size: int = 250

    # Traceability matrix: JSON file {"components": {"Name": {"tags": [...]}}}
    traceability_file: str = "./config/traceability.json"

    # Maps file path fragments to component names, e.g. {"src/auth": "Authentication"}
    component_mapping: Dict[str, str] = {}

    # Regression test identification: "folder" or "field"
    regression_method: str = "folder"
    regression_folder_keyword: str = "Regression"
    regression_field_name: str = "Test Type"
    regression_field_value: str = "Regression"

    # Time estimation (minutes per test by complexity, hours per impacted section)
    time_per_test_simple: int = 5
    time_per_test_medium: int = 10
    time_per_test_complex: int = 15
    hours_per_section: float = 1.0

    # Caching of the TestRail inventory
    enable_caching: bool = False
    cache_ttl_seconds: float = 3600.0

    # Outbound HTTP
    http_timeout_seconds: float = 30.0

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
