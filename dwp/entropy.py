import logging
import os
import secrets
import struct
from typing import List, Optional

logger = logging.getLogger(__name__)

# TPM 2.0 wire constants (TPM 2.0 Library, Part 2)
TPM_ST_NO_SESSIONS = 0x8001
TPM_CC_GET_RANDOM = 0x0000017B
TPM_RC_SUCCESS = 0x000

COMMAND_HEADER = struct.Struct(">HII")
RESPONSE_HEADER = struct.Struct(">HII")
DIGEST_SIZE = struct.Struct(">H")

# Largest response we ever expect: header + TPM2B_DIGEST of a SHA-512 size
MAX_RESPONSE_SIZE = RESPONSE_HEADER.size + DIGEST_SIZE.size + 64

DEFAULT_TPM_DEVICES = ["/dev/tpmrm0", "/dev/tpm0"]


class EntropyError(OSError):
    """Raised when an entropy source cannot be opened or read."""


class EntropySource:
    """A source of uniformly random bytes."""

    name = "abstract"

    def read(self, n: int) -> bytes:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class SystemEntropySource(EntropySource):
    """Platform CSPRNG via the secrets module."""

    name = "system"

    def read(self, n: int) -> bytes:
        try:
            data = secrets.token_bytes(n)
        except OSError as e:
            raise EntropyError(f"System random generator unavailable: {e}") from e
        if len(data) != n:
            raise EntropyError(f"Short read from system random generator: {len(data)} of {n} bytes")
        return data


def build_get_random_command(count: int) -> bytes:
    """Encode a TPM2_GetRandom command asking for `count` bytes."""
    if not 0 < count <= 0xFFFF:
        raise ValueError(f"Invalid TPM random byte count: {count}")
    size = COMMAND_HEADER.size + 2
    return COMMAND_HEADER.pack(TPM_ST_NO_SESSIONS, size, TPM_CC_GET_RANDOM) + struct.pack(">H", count)


def parse_get_random_response(response: bytes) -> bytes:
    """
    Decode a TPM2_GetRandom response and return the random bytes it carries.
    Raises EntropyError on a non-success response code or a malformed reply.
    """
    if len(response) < RESPONSE_HEADER.size:
        raise EntropyError(f"Truncated TPM response header ({len(response)} bytes)")
    tag, size, code = RESPONSE_HEADER.unpack_from(response)
    if code != TPM_RC_SUCCESS:
        raise EntropyError(f"TPM2_GetRandom failed with response code 0x{code:08x}")
    if size != len(response):
        raise EntropyError(f"TPM response size mismatch: header says {size}, got {len(response)}")
    offset = RESPONSE_HEADER.size
    if len(response) < offset + DIGEST_SIZE.size:
        raise EntropyError("Truncated TPM response: missing digest size")
    (digest_size,) = DIGEST_SIZE.unpack_from(response, offset)
    offset += DIGEST_SIZE.size
    digest = response[offset:offset + digest_size]
    if len(digest) != digest_size:
        raise EntropyError(f"Truncated TPM digest: expected {digest_size} bytes, got {len(digest)}")
    return digest


class TPMEntropySource(EntropySource):
    """
    Random bytes from a TPM 2.0 chip, queried through its character device
    with raw TPM2_GetRandom commands.
    """

    name = "tpm"

    def __init__(self, device: Optional[str] = None, handle=None):
        self.device = device
        self._handle = handle
        if self._handle is None:
            self._handle = self._open_device(device)

    @staticmethod
    def _open_device(device: Optional[str]):
        candidates: List[str] = [device] if device else [d for d in DEFAULT_TPM_DEVICES if os.path.exists(d)]
        if not candidates:
            raise EntropyError(f"Failed to open TPM: no device found (tried {', '.join(DEFAULT_TPM_DEVICES)})")
        last_error = None
        for path in candidates:
            try:
                handle = open(path, "r+b", buffering=0)
                logger.info(f"Opened TPM device: {path}")
                return handle
            except OSError as e:
                logger.debug(f"Could not open TPM device {path}: {e}")
                last_error = e
        raise EntropyError(f"Failed to open TPM: {last_error}") from last_error

    def _get_random(self, count: int) -> bytes:
        if self._handle is None:
            raise EntropyError("TPM device is closed")
        try:
            self._handle.write(build_get_random_command(count))
            response = self._handle.read(MAX_RESPONSE_SIZE)
        except OSError as e:
            raise EntropyError(f"TPM I/O error: {e}") from e
        return parse_get_random_response(response or b"")

    def read(self, n: int) -> bytes:
        data = b""
        while len(data) < n:
            chunk = self._get_random(n - len(data))
            if not chunk:
                raise EntropyError("TPM returned no random bytes")
            data += chunk
        return data

    def close(self) -> None:
        if self._handle is not None:
            try:
                self._handle.close()
            finally:
                self._handle = None
                logger.debug("Closed TPM device.")


SOURCES = {
    SystemEntropySource.name: SystemEntropySource,
    TPMEntropySource.name: TPMEntropySource,
}


def open_source(name: str, device: Optional[str] = None) -> EntropySource:
    """Open the entropy source registered under `name`."""
    if name not in SOURCES:
        raise ValueError(f"Unknown entropy source: {name} (choose from {', '.join(SOURCES)})")
    logger.info(f"Using entropy source: {name}")
    if name == TPMEntropySource.name:
        return TPMEntropySource(device)
    return SOURCES[name]()
