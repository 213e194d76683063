"""Upstream Microsoft Graph client protocol and httpx implementation."""

from .client import GraphClient, GraphRequest, HttpxGraphClient, HttpxRequest, UpstreamError

__all__ = ["GraphClient", "GraphRequest", "HttpxGraphClient", "HttpxRequest", "UpstreamError"]
