"""Configuration management using TOML."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

try:
    import tomllib
except ImportError:
    import tomli as tomllib

DEFAULT_CONFIG_PATH = "blobstore.toml"


@dataclass
class ProviderConfig:
    """Configuration for a single storage provider."""

    name: str
    type: Literal["s3", "local"]
    enabled: bool = True

    # S3-specific fields
    endpoint: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    region: str | None = None
    bucket_prefix: str = ""

    # Local-specific fields
    base_path: str | None = None

    def validate(self) -> None:
        """Validate provider configuration."""
        if self.type == "s3":
            if not all([self.endpoint, self.access_key, self.secret_key]):
                raise ValueError(
                    f"S3 provider '{self.name}' missing required fields: "
                    f"endpoint, access_key, secret_key"
                )
        elif self.type == "local":
            if not self.base_path:
                raise ValueError(f"Local provider '{self.name}' missing required field: base_path")
        else:
            raise ValueError(f"Provider '{self.name}' has unknown type: {self.type}")

    def bucket_for(self, namespace: str) -> str:
        """Bucket name backing a namespace."""
        return f"{self.bucket_prefix}{namespace}"


@dataclass
class StorageSettings:
    """Global storage configuration."""

    namespace_prefix: str = "uploads"
    context: str = "dev"
    default_page_size: int = 50
    hydration_workers: int = 8
    timeout_seconds: int = 30
    max_retries: int = 0

    def validate(self) -> None:
        if self.default_page_size < 0:
            raise ValueError("default_page_size must not be negative")
        if self.hydration_workers < 1:
            raise ValueError("hydration_workers must be at least 1")
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")


@dataclass
class Config:
    """Complete configuration."""

    storage: StorageSettings = field(default_factory=StorageSettings)
    providers: list[ProviderConfig] = field(default_factory=list)

    @classmethod
    def from_file(cls, config_path: str | Path = DEFAULT_CONFIG_PATH) -> "Config":
        """Load configuration from TOML file."""
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {config_path}\n"
                f"Copy blobstore.toml.example to {config_path} and edit it."
            )

        with open(config_path, "rb") as f:
            data = tomllib.load(f)

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Build configuration from parsed TOML data."""
        defaults = StorageSettings()
        storage_data = data.get("storage", {})
        storage = StorageSettings(
            namespace_prefix=storage_data.get("namespace_prefix", defaults.namespace_prefix),
            context=storage_data.get("context", defaults.context),
            default_page_size=storage_data.get("default_page_size", defaults.default_page_size),
            hydration_workers=storage_data.get("hydration_workers", defaults.hydration_workers),
            timeout_seconds=storage_data.get("timeout_seconds", defaults.timeout_seconds),
            max_retries=storage_data.get("max_retries", defaults.max_retries),
        )

        providers = []
        for provider_data in data.get("providers", []):
            provider = ProviderConfig(
                name=provider_data["name"],
                type=provider_data["type"],
                enabled=provider_data.get("enabled", True),
                endpoint=provider_data.get("endpoint"),
                access_key=provider_data.get("access_key"),
                secret_key=provider_data.get("secret_key"),
                region=provider_data.get("region"),
                bucket_prefix=provider_data.get("bucket_prefix", ""),
                base_path=provider_data.get("base_path"),
            )
            providers.append(provider)

        return cls(storage=storage, providers=providers)

    def get_enabled_providers(self) -> list[ProviderConfig]:
        """Get list of enabled providers."""
        return [p for p in self.providers if p.enabled]

    def get_provider(self, name: str) -> ProviderConfig | None:
        """Get provider by name."""
        for provider in self.providers:
            if provider.name == name:
                return provider
        return None

    def default_provider(self) -> ProviderConfig | None:
        """First enabled provider, if any."""
        enabled = self.get_enabled_providers()
        return enabled[0] if enabled else None

    def validate(self) -> None:
        """Validate settings and all enabled providers."""
        self.storage.validate()
        for provider in self.get_enabled_providers():
            provider.validate()
