"""Failover routing engine."""

from llm_orchestra.config.schemas import RetryConfig

from .router import Attempt, ModelChainEntry, RouteResult, Router

__all__ = ["Attempt", "ModelChainEntry", "RetryConfig", "RouteResult", "Router"]
