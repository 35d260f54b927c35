"""secp256k1 keys, EIP-1559 transactions and Ethereum signatures."""

import hashlib
import hmac
from dataclasses import dataclass, replace
from typing import ClassVar

from Crypto.Hash import keccak

_P = 2**256 - 2**32 - 977
_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
_G = (
    0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798,
    0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8,
)
_BE = "big"


def keccak256(data):
    """Return the 32-byte Keccak-256 digest of data."""
    return keccak.new(digest_bits=256, data=bytes(data)).digest()


def _point_add(a, b):
    if a is None:
        return b
    if b is None:
        return a
    x1, y1 = a
    x2, y2 = b
    if x1 == x2:
        if (y1 + y2) % _P == 0:
            return None
        slope = 3 * x1 * x1 * pow(2 * y1, -1, _P) % _P
    else:
        slope = (y2 - y1) * pow(x2 - x1, -1, _P) % _P
    x3 = (slope * slope - x1 - x2) % _P
    return x3, (slope * (x1 - x3) - y1) % _P


def _point_mul(k, point):
    result = None
    addend = point
    while k:
        if k & 1:
            result = _point_add(result, addend)
        addend = _point_add(addend, addend)
        k >>= 1
    return result


def _coerce_private_key(raw):
    scalar = raw
    if isinstance(scalar, (bytes, bytearray)):
        if len(scalar) != 32:
            raise ValueError("private key must be 32 bytes")
        scalar = int.from_bytes(scalar, _BE)
    if not isinstance(scalar, int) or isinstance(scalar, bool):
        raise TypeError("private key must be an int or 32 bytes")
    if not 0 < scalar < _N:
        raise ValueError("private key is out of range for secp256k1")
    return scalar


def _checksum_address(raw):
    hex_addr = raw.hex()
    digest = keccak256(hex_addr.encode("ascii")).hex()
    return "0x" + "".join(
        char.upper() if int(nibble, 16) >= 8 else char
        for char, nibble in zip(hex_addr, digest)
    )


def _address_from_point(point):
    x, y = point
    return _checksum_address(keccak256(x.to_bytes(32, _BE) + y.to_bytes(32, _BE))[-20:])


def private_key_to_address(private_key):
    """Return the EIP-55 checksummed address of a private key."""
    return _address_from_point(_point_mul(_coerce_private_key(private_key), _G))


def _rfc6979_nonces(scalar, digest):
    d_octets = scalar.to_bytes(32, _BE)
    msg_octets = (int.from_bytes(digest, _BE) % _N).to_bytes(32, _BE)

    def mac(mac_k, data):
        return hmac.new(mac_k, data, hashlib.sha256).digest()

    v = b"\x01" * 32
    k = b"\x00" * 32
    k = mac(k, v + b"\x00" + d_octets + msg_octets)
    v = mac(k, v)
    k = mac(k, v + b"\x01" + d_octets + msg_octets)
    v = mac(k, v)
    while True:
        v = mac(k, v)
        candidate = int.from_bytes(v, _BE)
        if 0 < candidate < _N:
            yield candidate
        k = mac(k, v + b"\x00")
        v = mac(k, v)


def _sign_hash(digest, scalar):
    """Return (r, s, recovery id) with a low s value."""
    z = int.from_bytes(digest, _BE) % _N
    for nonce in _rfc6979_nonces(scalar, digest):
        rx, ry = _point_mul(nonce, _G)
        r = rx % _N
        if r == 0:
            continue
        s = pow(nonce, -1, _N) * (z + r * scalar) % _N
        if s == 0:
            continue
        recid = (ry & 1) | (2 if rx >= _N else 0)
        if s > _N // 2:
            s = _N - s
            recid ^= 1
        return r, s, recid
    raise RuntimeError("nonce generation exhausted")


def _recover_address(digest, r, s, recid):
    """Return the address whose key produced the signature over digest."""
    if not (0 < r < _N and 0 < s < _N) or recid not in range(4):
        raise ValueError("invalid signature values")
    x = r + (recid >> 1) * _N
    if x >= _P:
        raise ValueError("invalid signature: r out of range")
    alpha = (pow(x, 3, _P) + 7) % _P
    beta = pow(alpha, (_P + 1) // 4, _P)
    if beta * beta % _P != alpha:
        raise ValueError("invalid signature: no curve point for r")
    y = beta if beta & 1 == recid & 1 else _P - beta
    z = int.from_bytes(digest, _BE) % _N
    r_inv = pow(r, -1, _N)
    point = _point_add(_point_mul(-z * r_inv % _N, _G), _point_mul(s * r_inv % _N, (x, y)))
    if point is None:
        raise ValueError("invalid signature: recovered point at infinity")
    return _address_from_point(point)


def _hex_bytes(value):
    if value is None:
        return b""
    if isinstance(value, str):
        text = value[2:] if value[:2] in ("0x", "0X") else value
        return bytes.fromhex(text)
    return bytes(value)


def _rlp_length(length, offset):
    if length < 56:
        return bytes([offset + length])
    encoded = length.to_bytes((length.bit_length() + 7) // 8, _BE)
    return bytes([offset + 55 + len(encoded)]) + encoded


def _rlp(item):
    if isinstance(item, int) and not isinstance(item, bool):
        if item < 0:
            raise ValueError("RLP cannot encode negative integers")
        item = item.to_bytes((item.bit_length() + 7) // 8, _BE)
    if isinstance(item, (bytes, bytearray)):
        item = bytes(item)
        if len(item) == 1 and item[0] < 0x80:
            return item
        return _rlp_length(len(item), 0x80) + item
    if isinstance(item, (list, tuple)):
        payload = b"".join(_rlp(element) for element in item)
        return _rlp_length(len(payload), 0xC0) + payload
    raise TypeError(f"cannot RLP-encode {type(item).__name__}")


@dataclass(frozen=True)
class DynamicFeeTransaction:
    """An EIP-1559 (type 2) transaction; v, r and s are set once signed."""

    TYPE: ClassVar[int] = 2

    chain_id: int
    nonce: int
    max_priority_fee_per_gas: int
    max_fee_per_gas: int
    gas: int
    to: str | None
    value: int = 0
    data: bytes = b""
    access_list: tuple = ()
    v: int | None = None
    r: int | None = None
    s: int | None = None

    def _payload_fields(self, chain_id):
        return [
            chain_id,
            self.nonce,
            self.max_priority_fee_per_gas,
            self.max_fee_per_gas,
            self.gas,
            _hex_bytes(self.to),
            self.value,
            bytes(self.data),
            [
                [_hex_bytes(address), [_hex_bytes(slot) for slot in slots]]
                for address, slots in self.access_list
            ],
        ]

    def signing_payload(self, chain_id):
        """Return the bytes whose Keccak-256 hash is signed."""
        return bytes([self.TYPE]) + _rlp(self._payload_fields(chain_id))

    def encode(self):
        """Return the typed envelope as sent over the wire."""
        items = self._payload_fields(self.chain_id)
        items += [self.v or 0, self.r or 0, self.s or 0]
        return bytes([self.TYPE]) + _rlp(items)

    def hash(self):
        """Return the transaction hash."""
        return keccak256(self.encode())


class Signer:
    """Signs transactions and personal messages with one private key."""

    def __init__(self, private_key):
        self._scalar = _coerce_private_key(private_key)
        self._address = private_key_to_address(self._scalar)

    @property
    def address(self):
        return self._address

    def __repr__(self):
        return f"Signer(address={self._address!r})"

    def sign_tx(self, tx, chain_id):
        """Return a copy of tx carrying a signature for the given chain."""
        if tx.chain_id != chain_id:
            raise ValueError(
                "failed to sign transaction: invalid chain id for signer: "
                f"have {tx.chain_id} want {chain_id}"
            )
        r, s, recid = _sign_hash(keccak256(tx.signing_payload(chain_id)), self._scalar)
        return replace(tx, v=recid, r=r, s=s)

    def sign_personal_message(self, message):
        """Sign per EIP-191 and return 65 bytes r || s || v with v in {27, 28}."""
        message = bytes(message)
        prefix = f"\x19Ethereum Signed Message:\n{len(message)}".encode()
        r, s, recid = _sign_hash(keccak256(prefix + message), self._scalar)
        return r.to_bytes(32, _BE) + s.to_bytes(32, _BE) + bytes([recid + 27])