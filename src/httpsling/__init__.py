"""HTTP request builder with pluggable retry, classification and decoding.

This package provides the Sling builder, the sender chain (HttpSender and the
RetrySender decorator), decode targets and decoders, and the response envelope.
"""

from __future__ import annotations

from pathlib import Path

from httpsling.deadline import Deadline
from httpsling.decoder import (
    DISCARD,
    Discard,
    JsonDecoder,
    ProtoJsonDecoder,
    RawCapture,
    Typed,
)
from httpsling.errors import (
    BodyEncodeError,
    CancellationError,
    ConnectionFailedError,
    DecodeError,
    HttpSlingError,
    InvalidSchemeError,
    QueryEncodeError,
    SettingsError,
    TlsCertificateError,
    TlsError,
    TooManyRedirectsError,
    TransportError,
    TransportTimeoutError,
    UrlParseError,
)
from httpsling.policy import PolicyRegistry
from httpsling.response import Response, decode_on_success
from httpsling.retry import (
    RetryOptions,
    RetrySender,
    default_retry_policy,
    exponential_backoff,
    full_jitter_backoff,
)
from httpsling.sender import HttpSender, OutgoingRequest, SendResult, default_sender
from httpsling.settings import HttpSettings, load_settings
from httpsling.sling import Sling
from httpsling.types import RetryDecision

__all__ = [
    "DISCARD",
    "BodyEncodeError",
    "CancellationError",
    "ConnectionFailedError",
    "Deadline",
    "DecodeError",
    "Discard",
    "HttpSender",
    "HttpSettings",
    "HttpSlingError",
    "InvalidSchemeError",
    "JsonDecoder",
    "OutgoingRequest",
    "ProtoJsonDecoder",
    "QueryEncodeError",
    "RawCapture",
    "Response",
    "RetryDecision",
    "RetryOptions",
    "RetrySender",
    "SendResult",
    "SettingsError",
    "Sling",
    "TlsCertificateError",
    "TlsError",
    "TooManyRedirectsError",
    "TransportError",
    "TransportTimeoutError",
    "Typed",
    "UrlParseError",
    "decode_on_success",
    "default_retry_policy",
    "default_sender",
    "exponential_backoff",
    "full_jitter_backoff",
    "load_settings",
    "make_sling_with_policy",
]


def make_sling_with_policy(
    base_url: str, policy_name: str, policies_root: Path, sender: HttpSender | None = None
) -> Sling:
    """Create a builder whose sender retries per a policy loaded from file.

    Parameters
    ----------
    base_url : str
        Base URL for all requests.
    policy_name : str
        Name of retry policy to load (without .yaml extension).
    policies_root : Path
        Directory containing policy YAML files.
    sender : HttpSender | None, optional
        Sender to wrap. Defaults to the process-wide default sender.

    Returns
    -------
    Sling
        Configured builder.
    """
    options = PolicyRegistry(policies_root).get(policy_name).to_options()
    return Sling(sender).base(base_url).auto_retry(options)
