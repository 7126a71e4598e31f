"""
Reliability helpers for talking to nodes that come and go.

- RetryExecutor: retry with exponential or fixed backoff
"""

from chainscale.reliability.retry import (
    JitterStrategy as JitterStrategy,
    RetryConfig as RetryConfig,
    RetryExecutor as RetryExecutor,
)
