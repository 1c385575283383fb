#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
The autokey XOR cipher that frames every smart plug datagram.

The cipher is an obfuscation scheme, not a security boundary. Each byte is
XORed with a running key that starts at 0xAB. On encryption the key advances
to the byte just produced; on decryption it advances to the byte just
consumed. The two rules must stay different for decrypt() to invert encrypt().
"""

from __future__ import annotations

from .internal_types import *
from .constants import CIPHER_SEED_KEY

def encrypt(plaintext: Union[str, bytes]) -> bytes:
    """Encrypts a plaintext command. A str is UTF-8 encoded first.

    The result has the same length as the (encoded) input.
    """
    data = plaintext.encode('utf-8') if isinstance(plaintext, str) else plaintext
    result = bytearray(len(data))
    key = CIPHER_SEED_KEY
    for i, c in enumerate(data):
        key ^= c
        result[i] = key
    return bytes(result)

def decrypt(ciphertext: bytes) -> bytes:
    """Decrypts a received datagram payload. Any byte sequence is accepted."""
    result = bytearray(len(ciphertext))
    key = CIPHER_SEED_KEY
    for i, c in enumerate(ciphertext):
        result[i] = key ^ c
        key = c
    return bytes(result)

def decrypt_str(ciphertext: bytes) -> str:
    """Decrypts a received datagram payload into a str.

    Bytes that are not valid UTF-8 are replaced rather than raising; deciding whether the
    plaintext makes sense is left to the response decoder.
    """
    return decrypt(ciphertext).decode('utf-8', errors='replace')
