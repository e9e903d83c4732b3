from rosapilot.providers.base_provider import BaseProvider
from rosapilot.providers.rosa.provider import RosaConfig, RosaProvider


class ProviderFactory:
    @staticmethod
    def get_provider(provider_type: str, provider_config: RosaConfig | dict | None = None) -> BaseProvider:
        if provider_type.lower() == 'rosa':
            if provider_config is None:
                provider_config = RosaConfig.from_env()
            elif isinstance(provider_config, dict):
                provider_config = RosaConfig(**provider_config)

            return RosaProvider(provider_config)

        raise ValueError(f'Unknown provider: {provider_type}')
