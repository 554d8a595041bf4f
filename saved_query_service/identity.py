import aiohttp
import jwt

from abc import ABC, abstractmethod
from datetime import datetime
from fastapi import Depends
from functools import lru_cache
from structlog.stdlib import BoundLogger
from typing import Annotated

from .config import ConfigDependency
from .logger import LoggerDependency

__all__ = [
    "IdentityVerifierError",
    "UninitializedIdentityVerifierError",
    "TokenSigningAlgorithmError",
    "MissingSubjectError",
    "BaseIdentityVerifier",
    "IdentityVerifier",
    "get_identity_verifier",
    "IdentityVerifierDependency",
]


class IdentityVerifierError(Exception):
    pass


class UninitializedIdentityVerifierError(IdentityVerifierError):
    pass


class TokenSigningAlgorithmError(IdentityVerifierError):
    pass


class MissingSubjectError(IdentityVerifierError):
    pass


class BaseIdentityVerifier(ABC):
    """
    Establishes who is making a request: verifies a bearer token issued by the configured identity provider and
    extracts the acting user's ID (the token subject) from it.
    """

    def __init__(
        self,
        logger: BoundLogger,
        openid_config_url: str,
        audience: str,
        disabled_token_signing_algorithms: frozenset[str],
        debug: bool,
    ):
        self._logger: BoundLogger = logger

        self._openid_config_url: str = openid_config_url
        self._audience: str = audience
        self._disabled_token_signing_algorithms: frozenset[str] = disabled_token_signing_algorithms
        self._debug: bool = debug

        self._initialized: bool = False

    @property
    def audience(self) -> str:
        return self._audience

    @property
    def debug(self) -> bool:
        return self._debug

    @property
    def initialized(self) -> bool:
        return self._initialized

    @abstractmethod
    def get_supported_token_signing_algs(self) -> frozenset[str]:  # pragma: no cover
        pass

    def get_permitted_token_signing_algs(self) -> frozenset[str]:
        return self.get_supported_token_signing_algs() - self._disabled_token_signing_algorithms

    @staticmethod
    def check_token_signing_alg(token_header: dict, permitted_algs: frozenset[str]) -> None:
        if (alg := token_header.get("alg")) is None or alg not in permitted_algs:
            raise TokenSigningAlgorithmError(f"Token signing algorithm not permitted: {alg}")

    def _verify_and_decode(self, token: str, signing_key: jwt.PyJWK | str) -> dict:
        permitted_algs = self.get_permitted_token_signing_algs()
        self.check_token_signing_alg(jwt.get_unverified_header(token), permitted_algs)
        return jwt.decode(
            token,
            signing_key if isinstance(signing_key, str) else signing_key.key,
            audience=self.audience,
            algorithms=list(permitted_algs),
        )

    @abstractmethod
    async def initialize(self) -> None:  # pragma: no cover
        pass

    @abstractmethod
    async def decode(self, token: str) -> dict:  # pragma: no cover
        pass

    async def verify(self, token: str) -> str:
        """
        Verifies a bearer token and returns the ID of the user it was issued to.
        :param token: Encoded JWT access token.
        :return: The token subject, used as the actor's user ID.
        """
        token_data = await self.decode(token)
        if not (sub := token_data.get("sub")):
            raise MissingSubjectError("Token does not specify a subject")
        return sub


JWKS_EXPIRY_TIME = 60  # seconds
OPENID_CONFIGURATION_EXPIRY_TIME = 3600  # seconds


class IdentityVerifier(BaseIdentityVerifier):
    def __init__(
        self,
        logger: BoundLogger,
        openid_config_url: str,
        audience: str,
        disabled_token_signing_algorithms: frozenset[str],
        debug: bool = False,
    ):
        super().__init__(logger, openid_config_url, audience, disabled_token_signing_algorithms, debug)

        self._openid_config: dict | None = None
        self._openid_config_fetched_at: datetime | None = None

        self._signing_keys: tuple[jwt.PyJWK, ...] = ()
        self._signing_keys_fetched_at: float = 0

    def _client_session(self) -> aiohttp.ClientSession:
        # TLS verification is turned off in debug mode, to allow for self-signed development certificates
        return aiohttp.ClientSession(connector=aiohttp.TCPConnector(ssl=not self.debug))

    async def refresh_openid_config(self) -> None:
        fetched_at = self._openid_config_fetched_at
        if fetched_at and (datetime.now() - fetched_at).total_seconds() <= OPENID_CONFIGURATION_EXPIRY_TIME:
            return

        logger = self._logger.bind(openid_config_url=self._openid_config_url)
        try:
            async with self._client_session() as session:
                async with session.get(self._openid_config_url, raise_for_status=True) as res:
                    self._openid_config = await res.json()
                    self._openid_config_fetched_at = datetime.now()
                    await logger.adebug("fetched OpenID configuration", status=res.status)
        except aiohttp.ClientError as e:
            # Transient errors are tolerated as long as configuration data was previously fetched
            await logger.aexception("error fetching OpenID configuration", exc_info=e)

    async def refresh_signing_keys(self) -> None:
        await self.refresh_openid_config()

        if not self._openid_config:
            raise IdentityVerifierError("Missing OpenID configuration; cannot fetch signing keys")

        if (now := datetime.now().timestamp()) - self._signing_keys_fetched_at <= JWKS_EXPIRY_TIME:
            return

        async with self._client_session() as session:
            async with session.get(self._openid_config["jwks_uri"], raise_for_status=True) as res:
                self._signing_keys = tuple(
                    k
                    for k in jwt.PyJWKSet.from_dict(await res.json()).keys
                    if k.public_key_use in ("sig", None) and k.key_id
                )
                self._signing_keys_fetched_at = now
                await self._logger.adebug("fetched signing keys", n_keys=len(self._signing_keys))

    def get_signing_key(self, token: str) -> jwt.PyJWK | None:
        kid = jwt.get_unverified_header(token).get("kid")
        return next((k for k in self._signing_keys if k.key_id == kid), None)

    async def initialize(self) -> None:
        try:
            await self.refresh_signing_keys()
            self._initialized = True
        except Exception as e:
            await self._logger.aexception("could not initialize identity verifier", exc_info=e)
            self._initialized = False

    def get_supported_token_signing_algs(self) -> frozenset[str]:
        return frozenset(self._openid_config["id_token_signing_alg_values_supported"])

    async def decode(self, token: str) -> dict:
        if not self._initialized:  # Initialize lazily, on the first token we see
            await self.initialize()
            if not self._initialized:
                raise UninitializedIdentityVerifierError("Identity verifier initialization failed")

        await self.refresh_signing_keys()

        if (signing_key := self.get_signing_key(token)) is None:
            raise IdentityVerifierError("Could not find signing key for token")

        return self._verify_and_decode(token, signing_key)


@lru_cache()
def _build_identity_verifier(
    logger: BoundLogger,
    openid_config_url: str,
    audience: str,
    disabled_token_signing_algorithms: frozenset[str],
    debug: bool,
) -> BaseIdentityVerifier:
    return IdentityVerifier(logger, openid_config_url, audience, disabled_token_signing_algorithms, debug)


def get_identity_verifier(config: ConfigDependency, logger: LoggerDependency) -> BaseIdentityVerifier:
    return _build_identity_verifier(
        logger,
        config.openid_config_url,
        config.token_audience,
        frozenset(config.disabled_token_signing_algorithms),
        config.bento_debug,
    )


IdentityVerifierDependency = Annotated[BaseIdentityVerifier, Depends(get_identity_verifier)]
