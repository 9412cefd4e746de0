# util/enums.py
from enum import Enum
from typing import NamedTuple
from fastapi import status


class Color(str, Enum):
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    BLUE = "\033[34m"

    def __str__(self):
        return self.value


class Environment(str, Enum):
    DEV = "dev"
    PROD = "prod"
    TEST = "test"


class ErrorInfo(NamedTuple):
    message: str
    http_status: int


class ErrorMessage(Enum):
    NO_FILE = ErrorInfo("No file provided", status.HTTP_400_BAD_REQUEST)
    INVALID_REQUEST_ID = ErrorInfo(
        "requestId may only contain letters, digits, '-' and '_' (max 64)",
        status.HTTP_400_BAD_REQUEST,
    )
    JOB_CONFLICT = ErrorInfo(
        "A job with this requestId is already running", status.HTTP_409_CONFLICT
    )
    # 499: non-standard "client closed request".
    CLIENT_DISCONNECTED = ErrorInfo("Client disconnected, job cancelled", 499)
    INTERNAL_ERROR = ErrorInfo(
        "Internal Error", status.HTTP_500_INTERNAL_SERVER_ERROR
    )
