"""
SealStream File Operations Module
=================================

Whole-file encryption and decryption on top of the cipher session.

Security Features:
- Output written to a temporary file and renamed into place
- Plaintext only reaches the destination after tag verification
- Fail-closed design

Components:
- encrypt.py: File to envelope
- decrypt.py: Envelope to file with integrity check
"""

from sealstream.core.file_ops.encrypt import ENCRYPTED_FILE_SUFFIX, encrypt_file
from sealstream.core.file_ops.decrypt import decrypt_file

__all__ = [
    "ENCRYPTED_FILE_SUFFIX",
    "encrypt_file",
    "decrypt_file",
]
