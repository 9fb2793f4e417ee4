"""Response compression negotiated from ``Accept-Encoding``."""

from __future__ import annotations

import gzip
import io

from flask import Response, request

try:  # pragma: no cover - optional dependency
    import brotli  # type: ignore
except ImportError:  # pragma: no cover - optional dependency
    brotli = None

from .base import Stage

__all__ = ["ResponseCompression", "negotiate_encoding"]


_COMPRESSIBLE_MIMETYPES = {
    "application/json",
    "application/javascript",
    "application/xml",
    "application/xhtml+xml",
    "image/svg+xml",
}


def _parse_accept_encoding(header_value: str) -> list[tuple[str, float]]:
    encodings: list[tuple[str, float]] = []
    for part in header_value.split(","):
        token = part.strip()
        if not token:
            continue
        encoding = token
        q = 1.0
        if ";" in token:
            encoding, *params = [segment.strip() for segment in token.split(";")]
            for param in params:
                if param.startswith("q="):
                    try:
                        q = float(param[2:])
                    except ValueError:
                        q = 0.0
        encodings.append((encoding, q))
    encodings.sort(key=lambda item: item[1], reverse=True)
    return encodings


def negotiate_encoding(header_value: str, available: tuple[str, ...]) -> str | None:
    """Pick the highest-weighted encoding from ``available``."""

    for encoding, quality in _parse_accept_encoding(header_value):
        if quality <= 0:
            continue
        encoding = encoding.lower()
        if encoding in available:
            return encoding
        if encoding == "*" and available:
            return available[0]
    return None


class ResponseCompression(Stage):
    """Compress eligible response bodies; never rejects a request."""

    name = "compression"

    def __init__(
        self,
        *,
        enabled: bool = True,
        min_size: int = 512,
        gzip_level: int = 6,
        brotli_quality: int = 5,
    ) -> None:
        self.enabled = enabled
        self.min_size = min_size
        self.gzip_level = gzip_level
        self.brotli_quality = brotli_quality
        available: list[str] = []
        if brotli is not None:
            available.append("br")
        available.append("gzip")
        self.available = tuple(available)

    def _compress(self, data: bytes, encoding: str) -> bytes:
        if encoding == "gzip":
            buffer = io.BytesIO()
            with gzip.GzipFile(fileobj=buffer, mode="wb", compresslevel=self.gzip_level) as gz:
                gz.write(data)
            return buffer.getvalue()
        if encoding == "br" and brotli is not None:
            return brotli.compress(data, quality=self.brotli_quality)
        raise ValueError(f"Unsupported encoding: {encoding}")

    def _should_compress(self, response: Response) -> bool:
        if not self.enabled:
            return False
        if response.direct_passthrough or response.is_streamed:
            return False
        if request.method == "HEAD":
            return False
        if response.status_code < 200 or response.status_code >= 300:
            return False
        if "Content-Encoding" in response.headers:
            return False

        mimetype = (response.mimetype or "").lower()
        if not (mimetype.startswith("text/") or mimetype in _COMPRESSIBLE_MIMETYPES):
            return False

        length = response.calculate_content_length()
        if length is None:
            length = len(response.get_data())
        return length >= self.min_size

    def after(self, response: Response) -> Response:
        if not self._should_compress(response):
            return response

        encoding = negotiate_encoding(request.headers.get("Accept-Encoding", ""), self.available)
        if not encoding:
            return response

        try:
            compressed = self._compress(response.get_data(), encoding)
        except ValueError:
            return response

        response.set_data(compressed)
        response.headers["Content-Encoding"] = encoding
        vary_header = response.headers.get("Vary")
        if vary_header:
            vary_values = {value.strip() for value in vary_header.split(",") if value.strip()}
            vary_values.add("Accept-Encoding")
            response.headers["Vary"] = ", ".join(sorted(vary_values))
        else:
            response.headers["Vary"] = "Accept-Encoding"
        return response
