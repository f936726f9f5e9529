"""Schemas package for request/response models."""

from approvals.schemas.approval import (
    ApprovalResponse,
    SoftFailureResponse,
    TransactionResponse,
)

__all__ = [
    "ApprovalResponse",
    "SoftFailureResponse",
    "TransactionResponse",
]
