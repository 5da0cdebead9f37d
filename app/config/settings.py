from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List, Dict


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""  # anon key, used to validate bearer tokens
    supabase_service_role_key: Optional[str] = None  # Required for every portal and balance operation

    # Storage buckets
    top_up_proof_bucket: str = "top-up-proofs"
    payment_method_qr_bucket: str = "payment-method-qr-codes"
    signed_url_ttl_seconds: int = 3600

    # Accounts
    site_url: str = "http://localhost:3000"
    system_email_domain: str = "users.firststeps.app"

    # Gateway: host based portal routing, e.g. "merchant.example.com=merchant,acct.example.com=accounting"
    portal_hosts: str = ""
    gateway_rate_limit: int = 120  # requests per window per client, 0 disables
    gateway_rate_window_seconds: int = 60
    kv_rest_url: Optional[str] = None  # Upstash-compatible REST endpoint
    kv_rest_token: Optional[str] = None
    kv_key_prefix: str = "ratelimit"
    kv_timeout_seconds: float = 2.0
    trusted_proxies: str = ""  # comma separated proxy addresses whose X-Forwarded-For is honoured

    # App
    app_name: str = "firststeps-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    rate_limit_enabled: bool = True
    auth_rate_limit: str = "10/minute"  # slowapi format
    withdrawal_rate_limit: str = "5/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def get_trusted_proxies(self) -> List[str]:
        return [p.strip() for p in self.trusted_proxies.split(",") if p.strip()]

    def get_portal_hosts(self) -> Dict[str, str]:
        """Parse "host=portal" pairs into a lowercase host -> portal mapping."""
        hosts = {}
        for pair in self.portal_hosts.split(","):
            if "=" not in pair:
                continue
            host, portal = pair.split("=", 1)
            if host.strip() and portal.strip():
                hosts[host.strip().lower()] = portal.strip().lower()
        return hosts

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
