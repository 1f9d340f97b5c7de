"""Application settings for the template engine."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "wordtemplate"
    environment: str = "local"
    log_level: str = "INFO"

    enable_normalization: bool = True
    soffice_command: str = "soffice"
    soffice_args: str = (
        "--headless --invisible --nologo --nofirststartwizard -env:UserInstallation={profile} "
        "--convert-to {format} --outdir {outdir} {input}"
    )
    conversion_timeout_seconds: int = 60
    temp_dir_prefix: str = "wordtemplate-"

    max_template_bytes: int = 50 * 1024 * 1024
    max_block_passes: int = 100
    long_table_threshold: int = 35
    verify_output_xml: bool = True

    model_config = SettingsConfigDict(env_file=".env", env_prefix="WORDTEMPLATE_", extra="ignore")


settings = Settings()
