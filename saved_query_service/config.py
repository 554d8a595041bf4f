from bento_lib.config.pydantic import BentoFastAPIBaseConfig
from fastapi import Depends
from functools import lru_cache
from typing import Annotated

from .constants import SERVICE_GROUP, SERVICE_ARTIFACT

__all__ = [
    "Config",
    "get_config",
    "ConfigDependency",
]


class Config(BentoFastAPIBaseConfig):
    # authorization decisions are made locally by the saved query pipeline, not by a remote authz service
    bento_authz_service_url: str = ""

    service_id: str = f"{SERVICE_GROUP}:{SERVICE_ARTIFACT}"
    service_name: str = "Saved Query Service"

    database_uri: str = "postgres://localhost:5432"

    # Optional path to a JSON policy document (role -> grants). If unset, the built-in default policy is used.
    policy_path: str | None = None

    # OpenID well-known URL of the Identity Provider which issues the bearer tokens used to identify actors
    openid_config_url: str = "https://auth.local/realms/main/.well-known/openid-configuration"

    #  - Expected access token audience
    token_audience: str = "account"
    #  - Default set of disabled 'insecure' algorithms (in this case symmetric key algorithms)
    disabled_token_signing_algorithms: frozenset = frozenset(["HS256", "HS384", "HS512"])


@lru_cache()
def get_config() -> Config:
    return Config()


ConfigDependency = Annotated[Config, Depends(get_config)]
