import jwt

from bento_lib.auth.middleware.fastapi import FastApiAuthMiddleware
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from typing import Annotated

from .config import get_config
from .identity import IdentityVerifierDependency, IdentityVerifierError
from .logger import LoggerDependency, get_logger

__all__ = [
    "OptionalBearerToken",
    "authz_middleware",
    "get_actor",
    "ActorDependency",
]


security = HTTPBearer(auto_error=False)
OptionalBearerToken = Annotated[HTTPAuthorizationCredentials | None, Depends(security)]


config_for_setup = get_config()
logger_for_setup = get_logger(config_for_setup)


class LocalFastApiAuthMiddleware(FastApiAuthMiddleware):
    def unauthorized(self, request: Request) -> HTTPException:
        self.mark_authz_done(request)
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authorized")


authz_middleware = LocalFastApiAuthMiddleware.build_from_fastapi_pydantic_config(config_for_setup, logger_for_setup)


async def get_actor(
    request: Request,
    authorization: OptionalBearerToken,
    identity_verifier: IdentityVerifierDependency,
    logger: LoggerDependency,
) -> str:
    """
    Dependency which verifies the request's bearer token and returns the acting user's ID. Routes using this
    dependency make their own authorization decisions (through the saved query pipeline), so the request is
    flagged as having had its authorization considered here.
    """

    authz_middleware.mark_authz_done(request)

    if authorization is None:
        raise authz_middleware.unauthorized(request)

    try:
        return await identity_verifier.verify(authorization.credentials)
    except jwt.ExpiredSignatureError:  # Straightforward, expired token - don't bother logging
        raise authz_middleware.unauthorized(request)
    except (jwt.InvalidTokenError, IdentityVerifierError) as e:
        await logger.awarning("could not verify bearer token", exception_repr=repr(e))
        raise authz_middleware.unauthorized(request)
    except Exception as e:  # Could not properly verify the token; treat the request as unauthenticated
        await logger.aexception(
            f"encountered error while verifying token for request {request.method} {request.url.path}",
            exc_info=e,
            request={"method": request.method, "path": request.url.path},
        )
        raise authz_middleware.unauthorized(request)


ActorDependency = Annotated[str, Depends(get_actor)]
