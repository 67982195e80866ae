"""
后端错误分类
封闭的错误种类集合，只有 duplicate_key 在批量写入点赞时可恢复
"""
from enum import Enum
from typing import Optional

from pymongo import errors as mongo_errors
from sqlalchemy import exc as sa_errors

from ..data_models.base import DomainError


# MongoDB 重复键错误码
DUPLICATE_KEY_CODE = 11000
# PostgreSQL unique_violation
PG_UNIQUE_VIOLATION = "23505"


class ErrorKind(str, Enum):
    """错误种类"""
    DUPLICATE_KEY = "duplicate_key"
    CONNECTION_FAILURE = "connection_failure"
    CLEANUP_FAILURE = "cleanup_failure"
    UNCLASSIFIED = "unclassified"


class BenchmarkError(DomainError):
    """基准运行错误基类"""
    kind = ErrorKind.UNCLASSIFIED

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, error_code=self.kind.value)
        self.cause = cause

    @property
    def recoverable(self) -> bool:
        return self.kind == ErrorKind.DUPLICATE_KEY


class DuplicateKeyError(BenchmarkError):
    """批量插入部分违反唯一约束"""
    kind = ErrorKind.DUPLICATE_KEY


class ConnectionFailureError(BenchmarkError):
    """后端不可达"""
    kind = ErrorKind.CONNECTION_FAILURE


class CleanupFailureError(BenchmarkError):
    """阶段间重置后仍有残留数据"""
    kind = ErrorKind.CLEANUP_FAILURE


class UnclassifiedBackendError(BenchmarkError):
    """其他后端错误"""
    kind = ErrorKind.UNCLASSIFIED


class StateTransitionError(BenchmarkError):
    """运行器非法状态转换"""
    kind = ErrorKind.UNCLASSIFIED


_ERROR_TYPES = {
    ErrorKind.DUPLICATE_KEY: DuplicateKeyError,
    ErrorKind.CONNECTION_FAILURE: ConnectionFailureError,
    ErrorKind.CLEANUP_FAILURE: CleanupFailureError,
    ErrorKind.UNCLASSIFIED: UnclassifiedBackendError,
}


def is_duplicate_bulk_error(exc: mongo_errors.BulkWriteError) -> bool:
    """批量写入的所有失败项都是重复键"""
    write_errors = exc.details.get("writeErrors", [])
    write_concern_errors = exc.details.get("writeConcernErrors", [])
    return bool(write_errors) and not write_concern_errors and all(
        error.get("code") == DUPLICATE_KEY_CODE for error in write_errors
    )


def classify_error(exc: BaseException) -> ErrorKind:
    """把驱动异常映射到错误种类"""
    if isinstance(exc, BenchmarkError):
        return exc.kind

    # MongoDB
    if isinstance(exc, mongo_errors.DuplicateKeyError):
        return ErrorKind.DUPLICATE_KEY
    if isinstance(exc, mongo_errors.BulkWriteError):
        return ErrorKind.DUPLICATE_KEY if is_duplicate_bulk_error(exc) else ErrorKind.UNCLASSIFIED
    if isinstance(exc, mongo_errors.ConnectionFailure):
        return ErrorKind.CONNECTION_FAILURE

    # SQLAlchemy
    if isinstance(exc, sa_errors.IntegrityError):
        pgcode = getattr(exc.orig, "pgcode", None)
        message = str(exc.orig).lower()
        if pgcode == PG_UNIQUE_VIOLATION or "unique" in message or "duplicate" in message:
            return ErrorKind.DUPLICATE_KEY
        return ErrorKind.UNCLASSIFIED
    if isinstance(exc, (sa_errors.DisconnectionError, sa_errors.InterfaceError)):
        return ErrorKind.CONNECTION_FAILURE
    if isinstance(exc, sa_errors.DBAPIError) and exc.connection_invalidated:
        return ErrorKind.CONNECTION_FAILURE

    return ErrorKind.UNCLASSIFIED


def as_benchmark_error(exc: BaseException, context: str = "") -> BenchmarkError:
    """包装为对应种类的 BenchmarkError"""
    if isinstance(exc, BenchmarkError):
        return exc
    kind = classify_error(exc)
    prefix = f"{context}: " if context else ""
    return _ERROR_TYPES[kind](f"{prefix}{exc}", cause=exc)
