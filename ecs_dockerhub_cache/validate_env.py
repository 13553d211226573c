from typing import Dict, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model
from pydantic_settings import BaseSettings, SettingsConfigDict

DOCKERHUB_ENV_KEYS = ("DOCKERHUB_USERNAME", "DOCKERHUB_ACCESS_TOKEN")


class MissingEnvironmentError(ValueError):
    """One or more required environment variables are unset or empty."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing: Tuple[str, ...] = tuple(missing)
        super().__init__(
            "Missing required environment variables: " + ", ".join(self.missing)
        )


class _RequiredEnvironment(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True, extra="ignore", frozen=True)


class DockerHubCredentials(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    username: str = Field(min_length=1)
    access_token: str = Field(min_length=1, alias="accessToken")

    def secret_string(self) -> str:
        # JSON body of the pull-through cache secret
        return self.model_dump_json(by_alias=True)


def validate_env(required_keys: Sequence[str]) -> Dict[str, str]:
    # Values are returned as-is; every missing or empty key is reported at once
    keys = list(dict.fromkeys(required_keys))

    # Env var names are not always valid field names (leading underscore,
    # pydantic reserved names), so fields are numbered and aliased to the key.
    field_names = {f"key_{index}": key for index, key in enumerate(keys)}
    fields = {
        name: (str, Field(min_length=1, validation_alias=key))
        for name, key in field_names.items()
    }
    settings_model = create_model(
        "RequiredEnvironment", __base__=_RequiredEnvironment, **fields
    )

    try:
        settings = settings_model()
    except ValidationError as exc:
        failed = {
            field_names.get(error["loc"][0], error["loc"][0])
            for error in exc.errors()
            if error["loc"]
        }
        raise MissingEnvironmentError([key for key in keys if key in failed]) from exc

    return {key: getattr(settings, name) for name, key in field_names.items()}


def load_dockerhub_credentials() -> DockerHubCredentials:
    env = validate_env(DOCKERHUB_ENV_KEYS)
    return DockerHubCredentials(
        username=env["DOCKERHUB_USERNAME"],
        access_token=env["DOCKERHUB_ACCESS_TOKEN"],
    )
