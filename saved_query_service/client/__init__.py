from .api import ClientError, ClientUnauthorized, ClientRequestError, SavedQueryApi, SavedQueryClient
from .selector import LOAD_ERROR_MESSAGE, FlowState, InvalidTransition, Flow, SavedQuerySelector

__all__ = [
    "ClientError",
    "ClientUnauthorized",
    "ClientRequestError",
    "SavedQueryApi",
    "SavedQueryClient",
    "LOAD_ERROR_MESSAGE",
    "FlowState",
    "InvalidTransition",
    "Flow",
    "SavedQuerySelector",
]
