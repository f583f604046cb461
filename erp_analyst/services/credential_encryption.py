"""AES-256-GCM sealing of integration secrets at rest.

A stored secret is a small JSON envelope::

    {"v": 1, "alg": "AES-256-GCM", "nonce": "<b64>", "ct": "<b64>"}

The ciphertext is bound to its owner through additional authenticated data
(``"<tenant_id>:<integration>"``), so a row copied to another tenant or
integration no longer decrypts.

The 32-byte key comes from the first source that is set:

    1. ERP_ANALYST_CREDENTIAL_KEY       base64 of the raw key
    2. ERP_ANALYST_CREDENTIAL_KEY_FILE  path to a file holding the raw key
    3. ``.erp_analyst_key`` in the user data directory, created on first use
"""

import base64
import binascii
import json
import logging
import os
import stat
from pathlib import Path

from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from platformdirs import user_data_dir

logger = logging.getLogger(__name__)

KEY_ENV_VAR = "ERP_ANALYST_CREDENTIAL_KEY"
KEY_FILE_ENV_VAR = "ERP_ANALYST_CREDENTIAL_KEY_FILE"
KEY_FILENAME = ".erp_analyst_key"

ENVELOPE_VERSION = 1
ALGORITHM = "AES-256-GCM"
KEY_LENGTH = 32
NONCE_LENGTH = 12

_LOOSE_PERMISSION_BITS = stat.S_IRGRP | stat.S_IWGRP | stat.S_IROTH | stat.S_IWOTH


class CredentialDecryptionError(Exception):
    """A stored secret could not be opened (bad envelope, key or owner)."""


def build_aad(tenant_id: str, integration: str) -> str:
    """Owner binding for a tenant's integration secret."""
    return f"{tenant_id}:{integration}"


# ---------------------------------------------------------------------------
# Key loading
# ---------------------------------------------------------------------------


def _require_key_length(key: bytes, source: str) -> bytes:
    if len(key) != KEY_LENGTH:
        raise ValueError(f"{source} has invalid length {len(key)} (expected {KEY_LENGTH})")
    return key


def _key_from_env(value: str) -> bytes:
    try:
        raw = base64.b64decode(value, validate=True)
    except binascii.Error as e:
        raise ValueError(f"{KEY_ENV_VAR} contains invalid base64: {e}") from e
    return _require_key_length(raw, KEY_ENV_VAR)


def _key_from_file(path: Path) -> bytes:
    if path.is_symlink() or not path.is_file():
        raise ValueError(f"{KEY_FILE_ENV_VAR} must point to a regular file: {path}")
    return _require_key_length(path.read_bytes(), f"Key file {path}")


def _load_or_generate(path: Path) -> bytes:
    """Read the local key file, creating it (mode 0600) when absent."""
    if path.exists():
        if os.name == "posix" and stat.S_IMODE(path.stat().st_mode) & _LOOSE_PERMISSION_BITS:
            logger.warning("Key file %s is readable by other users; chmod 600 it", path)
        return _require_key_length(path.read_bytes(), f"Key file {path}")

    key = os.urandom(KEY_LENGTH)
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    except FileExistsError:
        # Lost a creation race with another process
        return _require_key_length(path.read_bytes(), f"Key file {path}")
    with os.fdopen(fd, "wb") as handle:
        handle.write(key)
    logger.info("Generated credential encryption key at %s", path)
    return key


def get_or_create_key(key_dir: str | None = None) -> bytes:
    """Resolve the encryption key from the configured sources.

    Args:
        key_dir: Directory for the generated key file. Defaults to the
            platformdirs user data directory. Ignored when either
            environment variable is set.

    Raises:
        ValueError: When the configured key is not valid base64 or not
            32 bytes long.
    """
    env_key = os.environ.get(KEY_ENV_VAR, "").strip()
    if env_key:
        return _key_from_env(env_key)

    env_key_file = os.environ.get(KEY_FILE_ENV_VAR, "").strip()
    if env_key_file:
        return _key_from_file(Path(env_key_file))

    directory = Path(key_dir or user_data_dir("erp_analyst"))
    directory.mkdir(parents=True, exist_ok=True)
    return _load_or_generate(directory / KEY_FILENAME)


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


def _aad_bytes(aad: str) -> bytes | None:
    return aad.encode("utf-8") if aad else None


def encrypt_credentials(credentials: dict, key: bytes, aad: str = "") -> str:
    """Seal a credentials mapping into an envelope string.

    Raises:
        ValueError: If ``key`` is not 32 bytes.
    """
    _require_key_length(key, "Encryption key")
    nonce = os.urandom(NONCE_LENGTH)
    payload = json.dumps(credentials, sort_keys=True).encode("utf-8")
    sealed = AESGCM(key).encrypt(nonce, payload, _aad_bytes(aad))
    return json.dumps({
        "v": ENVELOPE_VERSION,
        "alg": ALGORITHM,
        "nonce": base64.b64encode(nonce).decode("ascii"),
        "ct": base64.b64encode(sealed).decode("ascii"),
    })


def _parse_envelope(encrypted: str) -> tuple[bytes, bytes]:
    """Validate an envelope and return its (nonce, ciphertext)."""
    try:
        envelope = json.loads(encrypted)
    except (TypeError, ValueError) as e:
        raise CredentialDecryptionError(f"Envelope is not JSON: {e}") from e
    if not isinstance(envelope, dict):
        raise CredentialDecryptionError("Envelope must be a JSON object")
    if envelope.get("v") != ENVELOPE_VERSION:
        raise CredentialDecryptionError(f"Unsupported envelope version: {envelope.get('v')!r}")
    if envelope.get("alg") != ALGORITHM:
        raise CredentialDecryptionError(f"Unsupported algorithm: {envelope.get('alg')!r}")

    try:
        nonce = base64.b64decode(envelope["nonce"], validate=True)
        ciphertext = base64.b64decode(envelope["ct"], validate=True)
    except (KeyError, TypeError, binascii.Error) as e:
        raise CredentialDecryptionError(f"Envelope fields are missing or malformed: {e}") from e
    if len(nonce) != NONCE_LENGTH:
        raise CredentialDecryptionError(f"Nonce must be {NONCE_LENGTH} bytes, got {len(nonce)}")
    return nonce, ciphertext


def decrypt_credentials(encrypted: str, key: bytes, aad: str = "") -> dict:
    """Open an envelope produced by encrypt_credentials().

    Args:
        encrypted: Envelope string.
        key: 32-byte key used for sealing.
        aad: Owner binding used for sealing.

    Returns:
        The original credentials mapping.

    Raises:
        CredentialDecryptionError: On any failure, including a wrong key
            or an owner mismatch.
    """
    if len(key) != KEY_LENGTH:
        raise CredentialDecryptionError(f"Key must be {KEY_LENGTH} bytes, got {len(key)}")
    nonce, ciphertext = _parse_envelope(encrypted)

    try:
        payload = json.loads(AESGCM(key).decrypt(nonce, ciphertext, _aad_bytes(aad)))
    except Exception as e:
        raise CredentialDecryptionError(f"Decryption failed: {type(e).__name__}") from e
    if not isinstance(payload, dict):
        raise CredentialDecryptionError(f"Decrypted payload is a {type(payload).__name__}, not an object")
    return payload
