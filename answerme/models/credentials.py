"""Provider credentials as handed to provider clients."""

from pydantic import BaseModel, Field, SecretStr


class ProviderCredentials(BaseModel):
    """Decrypted credentials for one provider call."""

    provider_name: str = Field(..., description="Provider the credentials belong to")
    api_key: SecretStr = Field(..., description="Plain API key, hidden from repr and logs")
    endpoint: str | None = Field(None, description="Custom endpoint, provider default when None")
    model: str | None = Field(None, description="Model override, provider default when None")
