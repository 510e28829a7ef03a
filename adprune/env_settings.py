from functools import lru_cache

from pydantic_settings import BaseSettings
from pydantic import Field

from .ad import ADConfig


class EnvSettings(BaseSettings):
    # Directory connection
    ad_server: str = Field("", alias="ADPRUNE_SERVER")  # DC short name, FQDN or IP
    ad_domain: str = Field("", alias="ADPRUNE_DOMAIN")
    ad_port: int = Field(636, alias="ADPRUNE_PORT")
    ad_use_ssl: bool = Field(True, alias="ADPRUNE_USE_SSL")
    ad_starttls: bool = Field(False, alias="ADPRUNE_STARTTLS")
    ad_bind_username: str = Field("", alias="ADPRUNE_BIND_USER")
    ad_bind_password: str = Field("", alias="ADPRUNE_BIND_PASSWORD")
    ad_base_dn: str = Field("", alias="ADPRUNE_BASE_DN")
    ad_tls_validate: bool = Field(False, alias="ADPRUNE_TLS_VALIDATE")
    ad_ca_file: str = Field("", alias="ADPRUNE_CA_FILE")
    ad_timeout_s: int = Field(30, alias="ADPRUNE_TIMEOUT_S")
    ad_page_size: int = Field(1000, alias="ADPRUNE_PAGE_SIZE")

    # Output
    report_root: str = Field("reports", alias="ADPRUNE_REPORT_ROOT")
    journal_path: str = Field("", alias="ADPRUNE_JOURNAL_PATH")  # empty = journal off

    # Logging
    log_level: str = Field("INFO", alias="ADPRUNE_LOG_LEVEL")
    log_dir: str = Field("", alias="ADPRUNE_LOG_DIR")  # empty = console only
    log_retention_days: int = Field(30, alias="ADPRUNE_LOG_RETENTION_DAYS")

    class Config:
        populate_by_name = True

    def ad_config(self) -> ADConfig:
        return ADConfig(
            server=self.ad_server,
            domain=self.ad_domain,
            port=self.ad_port,
            use_ssl=self.ad_use_ssl,
            starttls=self.ad_starttls,
            bind_username=self.ad_bind_username,
            bind_password=self.ad_bind_password,
            base_dn=self.ad_base_dn,
            tls_validate=self.ad_tls_validate,
            ca_file=self.ad_ca_file,
            timeout_s=self.ad_timeout_s,
            page_size=self.ad_page_size,
        )


@lru_cache(maxsize=1)
def get_env() -> EnvSettings:
    return EnvSettings()
