from bento_lib.apps.fastapi import BentoFastAPI
from bento_lib.responses.errors import http_error
from bento_lib.service_info.types import BentoExtraServiceInfo
from fastapi import Request, status
from fastapi.responses import JSONResponse

from . import __version__
from .authz import authz_middleware
from .config import get_config
from .constants import BENTO_SERVICE_KIND, SERVICE_TYPE
from .errors import ErrorKind, PipelineError
from .logger import get_logger
from .routers.all_permissions import all_permissions_router
from .routers.policy import policy_router
from .routers.saved_queries import saved_queries_router
from .routers.schemas import schema_router


BENTO_SERVICE_INFO: BentoExtraServiceInfo = {
    "serviceKind": BENTO_SERVICE_KIND,
    "dataService": False,
}


config_for_setup = get_config()
logger_for_setup = get_logger(config_for_setup)

app = BentoFastAPI(
    authz_middleware,
    config_for_setup,
    logger_for_setup,
    BENTO_SERVICE_INFO,
    SERVICE_TYPE,
    __version__,
    configure_structlog_access_logger=True,
)

app.include_router(all_permissions_router)
app.include_router(policy_router)
app.include_router(saved_queries_router)
app.include_router(schema_router)


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    authz_middleware.mark_authz_done(request)

    if exc.kind == ErrorKind.UNAUTHORIZED:
        code = status.HTTP_401_UNAUTHORIZED
        return JSONResponse(http_error(code, "Not authorized"), status_code=code)

    code = status.HTTP_400_BAD_REQUEST
    return JSONResponse(http_error(code, exc.message), status_code=code)


app.add_exception_handler(PipelineError, pipeline_error_handler)
