# mediavault/identity.py
"""
Principals backed by RSA key pairs, and signed registry calls.

A principal is derived from its public key:
    "mv1" + first 40 hex chars of SHA3-256(DER SubjectPublicKeyInfo)

Hosts that accept calls from untrusted transports wrap each call in a
CallEnvelope signed with RSA-SHA256 (PKCS#1 v1.5). Verifying the envelope
both authenticates the signature and proves that the embedded public key
derives the principal the call will run as.
"""

import base64
import hashlib
import json
import os
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

PRINCIPAL_PREFIX = "mv1"


def _generate_keypair() -> tuple[bytes, bytes]:
    """Generate RSA key pair for signing."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
    )
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


def _canonicalize(data: Dict[str, Any]) -> bytes:
    """Sorted keys, no whitespace."""
    return json.dumps(data, sort_keys=True, separators=(",", ":")).encode()


def principal_from_public_pem(public_pem: bytes) -> str:
    """Derive the principal string for a PEM public key."""
    public_key = serialization.load_pem_public_key(public_pem)
    der = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return PRINCIPAL_PREFIX + hashlib.sha3_256(der).hexdigest()[:40]


@dataclass
class Identity:
    """
    A key pair acting as a registry principal.

    Attributes:
        public_key: PEM-encoded public key
        private_key: PEM-encoded private key (None for verify-only identities)
        created_at: Timestamp of creation
    """
    public_key: bytes
    private_key: Optional[bytes] = None
    created_at: float = field(default_factory=time.time)

    @property
    def principal(self) -> str:
        return principal_from_public_pem(self.public_key)

    @classmethod
    def create(cls) -> "Identity":
        """Create a new identity with generated keys."""
        private_pem, public_pem = _generate_keypair()
        return cls(public_key=public_pem, private_key=private_pem)

    @classmethod
    def from_private_pem(cls, private_pem: bytes) -> "Identity":
        private_key = serialization.load_pem_private_key(private_pem, password=None)
        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        return cls(public_key=public_pem, private_key=private_pem)

    @classmethod
    def load(cls, path: Path | str) -> "Identity":
        """Load an identity from a private key PEM file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Key file not found: {path}")
        return cls.from_private_pem(path.read_bytes())

    def save(self, path: Path | str) -> Path:
        """Write the private key to a PEM file readable only by its owner."""
        if self.private_key is None:
            raise ValueError("Identity has no private key to save")
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        # O_CREAT leaves the mode of an existing file alone
        os.fchmod(fd, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(self.private_key)
        return path


@dataclass
class CallEnvelope:
    """
    A named registry call with its arguments, ready to sign.

    Attributes:
        operation: Registry operation name (e.g. "register")
        arguments: Keyword arguments for the operation, caller excluded
        nonce: Unique value so a signed call cannot be replayed
        public_key: PEM public key of the signer
        valid_until: Last block height at which the call may run (None: no expiry)
        signature: Base64 RSA-SHA256 signature (added by sign_call)
    """
    operation: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    nonce: str = field(default_factory=lambda: uuid.uuid4().hex)
    public_key: str = ""
    valid_until: Optional[int] = None
    signature: Optional[str] = None

    def signing_payload(self) -> bytes:
        return _canonicalize({
            "operation": self.operation,
            "arguments": self.arguments,
            "nonce": self.nonce,
            "public_key": self.public_key,
            "valid_until": self.valid_until,
        })

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "arguments": self.arguments,
            "nonce": self.nonce,
            "public_key": self.public_key,
            "valid_until": self.valid_until,
            "signature": self.signature,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CallEnvelope":
        return cls(
            operation=data["operation"],
            arguments=data.get("arguments", {}),
            nonce=data["nonce"],
            public_key=data.get("public_key", ""),
            valid_until=data.get("valid_until"),
            signature=data.get("signature"),
        )


def sign_call(
    operation: str,
    arguments: Dict[str, Any],
    identity: Identity,
    valid_until: Optional[int] = None,
) -> CallEnvelope:
    """
    Build and sign a call envelope.

    Args:
        operation: Registry operation name
        arguments: Keyword arguments for the operation
        identity: Signer; must hold a private key
        valid_until: Optional last block height at which the call may run

    Returns:
        CallEnvelope with signature attached
    """
    if identity.private_key is None:
        raise ValueError("Cannot sign without a private key")

    private_key = serialization.load_pem_private_key(identity.private_key, password=None)
    envelope = CallEnvelope(
        operation=operation,
        arguments=dict(arguments),
        public_key=identity.public_key.decode("utf-8"),
        valid_until=valid_until,
    )
    signature_bytes = private_key.sign(
        envelope.signing_payload(),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )
    envelope.signature = base64.b64encode(signature_bytes).decode("utf-8")
    return envelope


def verify_call(envelope: CallEnvelope) -> Optional[str]:
    """
    Verify an envelope's signature.

    Returns:
        The signer's principal if the signature is valid, otherwise None
    """
    if not envelope.signature or not envelope.public_key:
        return None

    try:
        public_pem = envelope.public_key.encode("utf-8")
        public_key = serialization.load_pem_public_key(public_pem)
        signature_bytes = base64.b64decode(envelope.signature)
        public_key.verify(
            signature_bytes,
            envelope.signing_payload(),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        return principal_from_public_pem(public_pem)

    except (InvalidSignature, ValueError, TypeError):
        return None
