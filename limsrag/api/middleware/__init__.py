"""Middleware for LIMS RAG API"""
from .request_id import RequestIDMiddleware
from .log_context import LogContextMiddleware
from .load_shed import LoadSheddingMiddleware

__all__ = ["RequestIDMiddleware", "LogContextMiddleware", "LoadSheddingMiddleware"]
