from pydantic_settings import BaseSettings
from pydantic import Field, model_validator, field_validator
import secrets


class Settings(BaseSettings):
    # ===== ENTORNO =====
    environment: str = Field(default="development", env="ENVIRONMENT")
    debug: bool = Field(default=False, env="DEBUG")

    # ===== LOGGING =====
    log_dir: str = Field(default="logs", env="LOG_DIR")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    # ===== DATABASE =====
    database_url: str = Field(default="sqlite:///./data/contaliados.db", env="DATABASE_URL")

    # ===== SECURITY =====
    secret_key: str = Field(
        default_factory=lambda: secrets.token_urlsafe(32),
        env="SECRET_KEY"
    )
    access_token_expire_minutes: int = Field(default=120, env="ACCESS_TOKEN_EXPIRE_MINUTES")

    # ===== ADMIN =====
    admin_user: str = Field(default="admin", env="ADMIN_USER")
    admin_pass: str = Field(default="admin", env="ADMIN_PASS")

    @field_validator("admin_user", "admin_pass", mode="after")
    @classmethod
    def empty_to_default(cls, v: str) -> str:
        return v.strip() if v and v.strip() else "admin"

    # ===== CORS =====
    allowed_origins: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        env="ALLOWED_ORIGINS"
    )

    # ===== WEBHOOKS =====
    # Secreto compartido que debe llegar en la cabecera X-Webhook-Secret
    webhook_secret: str = Field(default="", env="WEBHOOK_SECRET")

    # ===== DGI (facturación electrónica) =====
    # Sin URL o API key se usa un CAE simulado
    dgi_url_webservice: str | None = Field(default=None, env="DGI_URL_WEBSERVICE")
    dgi_api_key: str | None = Field(default=None, env="DGI_API_KEY")
    dgi_timeout_seconds: float = Field(default=30.0, env="DGI_TIMEOUT_SECONDS")

    # ===== COMISIONES DE PARTNERS =====
    commission_strategy: str = Field(default="marketplace", env="COMMISSION_STRATEGY")
    default_iva_rate: float = Field(default=22.0, env="DEFAULT_IVA_RATE")
    default_retencion_pasarela: float = Field(default=7.0, env="DEFAULT_RETENCION_PASARELA")
    default_comision_sistema: float = Field(default=15.0, env="DEFAULT_COMISION_SISTEMA")
    default_split_pasarela_partner: float = Field(default=50.0, env="DEFAULT_SPLIT_PASARELA_PARTNER")

    # ===== NUMERACIÓN =====
    entry_number_prefix: str = Field(default="ASI", env="ENTRY_NUMBER_PREFIX")
    entry_number_digits: int = Field(default=5, env="ENTRY_NUMBER_DIGITS")
    invoice_number_digits: int = Field(default=8, env="INVOICE_NUMBER_DIGITS")

    class Config:
        env_file = ".env"
        case_sensitive = False

    @model_validator(mode="after")
    def validate_production(self):
        if self.environment == "production":
            if len(self.secret_key) < 32:
                raise ValueError("SECRET_KEY debe tener al menos 32 caracteres en producción.")
            if not self.webhook_secret:
                raise ValueError("WEBHOOK_SECRET es obligatorio en producción.")
        return self

    @property
    def is_dev(self) -> bool:
        return self.environment != "production"

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def dgi_configurado(self) -> bool:
        return bool(self.dgi_url_webservice and self.dgi_api_key)


settings = Settings()
