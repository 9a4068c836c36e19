"""SOAP directory channel over HTTP.

Sends the IntegratedConfigurationReadRequest to the directory's
IntegratedConfiguration750In web service inside a SOAP 1.1 envelope. One call
is one HTTP request: no retries, bounded as a whole by the caller's timeout.

Example:
    channel = SoapDirectoryChannel("https://po.example.com/IntegratedConfigurationInService")
    resolver = DirectoryFallbackResolver(
        service="PO_SYSTEM",
        channel="SOAP_ICO_LOOKUP",
        channel_locator=HttpChannelLocator({("PO_SYSTEM", "SOAP_ICO_LOOKUP"): channel}),
    )
"""

import logging
import threading
import time
from typing import Dict, Optional, Tuple

import httpx

from ..utils.config_loader import RouterConfig
from ..utils.error_handlers import DirectoryLookupError
from .directory_resolver import DirectoryChannel

logger = logging.getLogger(__name__)

SOAP_ENVELOPE_NAMESPACE = "http://schemas.xmlsoap.org/soap/envelope/"
SOAP_ACTION = "http://sap.com/xi/WebService/soap1.1"

_ENVELOPE_START = (
    f'<soapenv:Envelope xmlns:soapenv="{SOAP_ENVELOPE_NAMESPACE}">'
    "<soapenv:Header/><soapenv:Body>"
).encode("utf-8")
_ENVELOPE_END = b"</soapenv:Body></soapenv:Envelope>"


class SoapDirectoryChannel(DirectoryChannel):
    """Directory channel posting SOAP envelopes with httpx.

    Supports both context manager and manual lifecycle management. When no
    client is injected, the channel owns (and closes) its own httpx.Client.

    Attributes:
        endpoint_url: URL of the directory web service.
        service: Directory-service identity, used in error reports.
        channel: Directory-channel identity, used in error reports.
    """

    def __init__(
        self,
        endpoint_url: str,
        service: Optional[str] = None,
        channel: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self.service = service
        self.channel = channel
        self._client = client
        self._owns_client = client is None
        # batch workers share one channel
        self._client_lock = threading.Lock()

    def __enter__(self) -> "SoapDirectoryChannel":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        with self._client_lock:
            if self._owns_client and self._client is not None:
                self._client.close()
                self._client = None

    def _get_client(self) -> httpx.Client:
        with self._client_lock:
            if self._client is None:
                self._client = httpx.Client()
            return self._client

    def _lookup_error(
        self, message: str, error: Exception, status_code: Optional[int] = None
    ) -> DirectoryLookupError:
        return DirectoryLookupError(
            message,
            service=self.service,
            channel=self.channel,
            status_code=status_code,
            original_error=error,
        )

    def call(self, request: bytes, timeout: float) -> bytes:
        """Post the request and return the SOAP answer body.

        `timeout` bounds the whole call. httpx applies it to each connect,
        write and read step; the answer body is additionally read against a
        deadline so that a slowly trickling answer cannot exceed it.

        Args:
            request: Serialized lookup request, placed in the SOAP body.
            timeout: Upper bound for the call in seconds.

        Returns:
            Raw answer bytes.

        Raises:
            DirectoryLookupError: On timeout, invalid endpoint URL, connection
                failure or HTTP error status.
        """
        envelope = _ENVELOPE_START + request + _ENVELOPE_END
        deadline = time.monotonic() + timeout

        try:
            with self._get_client().stream(
                "POST",
                self.endpoint_url,
                content=envelope,
                headers={
                    "Content-Type": "text/xml; charset=utf-8",
                    "SOAPAction": SOAP_ACTION,
                },
                timeout=httpx.Timeout(timeout),
            ) as response:
                response.raise_for_status()
                chunks = []
                for chunk in response.iter_bytes():
                    chunks.append(chunk)
                    if time.monotonic() > deadline:
                        raise httpx.ReadTimeout(
                            "Answer not complete before deadline",
                            request=response.request,
                        )
        except httpx.TimeoutException as e:
            raise self._lookup_error(
                f"Directory lookup timed out after {timeout}s", e
            ) from e
        except httpx.HTTPStatusError as e:
            raise self._lookup_error(
                f"Directory returned HTTP {e.response.status_code}",
                e,
                status_code=e.response.status_code,
            ) from e
        except httpx.InvalidURL as e:
            raise self._lookup_error(
                f"Invalid directory endpoint {self.endpoint_url!r}: {e}", e
            ) from e
        except (httpx.HTTPError, httpx.StreamError) as e:
            raise self._lookup_error(
                f"Cannot reach directory at {self.endpoint_url}: {e}", e
            ) from e

        return b"".join(chunks)


class HttpChannelLocator:
    """Locates directory channels by (service, channel) identity."""

    def __init__(
        self, channels: Optional[Dict[Tuple[str, str], DirectoryChannel]] = None
    ) -> None:
        self._channels: Dict[Tuple[str, str], DirectoryChannel] = dict(channels or {})

    @classmethod
    def from_config(
        cls, config: RouterConfig, client: Optional[httpx.Client] = None
    ) -> "HttpChannelLocator":
        """Register the configured lookup channel, if an endpoint URL is set."""
        channels: Dict[Tuple[str, str], DirectoryChannel] = {}
        if config.lookup_endpoint_url and config.lookup_service and config.lookup_channel:
            channels[(config.lookup_service, config.lookup_channel)] = (
                SoapDirectoryChannel(
                    config.lookup_endpoint_url,
                    service=config.lookup_service,
                    channel=config.lookup_channel,
                    client=client,
                )
            )
        else:
            logger.warning(
                "No lookup.endpoint_url configured, directory fallback is unavailable"
            )
        return cls(channels)

    def __call__(self, service: str, channel: str) -> Optional[DirectoryChannel]:
        return self._channels.get((service, channel))

    def close(self) -> None:
        for channel in self._channels.values():
            close = getattr(channel, "close", None)
            if close is not None:
                close()
