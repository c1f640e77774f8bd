"""
chunkseal — verified chunk distribution for large binary payloads.

Architecture:
    Producer:  content -> (root fingerprint, outboard)   encoder.encode_file / encode_bytes
    Consumer:  chunk + offset + outboard + root -> Accepted | Rejected(reason)
    Outboard:  u64le(content length) + pre-order parent records (64 bytes each)

The chunk size is part of the protocol: producer and consumer must pass the
same value. DEFAULT_CHUNK_SIZE is what the CLI and config use when nothing
else is configured; library calls always take it explicitly.
"""

__version__ = "0.1.0"

# Tree protocol constants
HASH_SIZE = 32  # BLAKE3 output, root fingerprint size
DEFAULT_CHUNK_SIZE = 256 * 1024  # 256 KiB leaves
MIN_CHUNK_SIZE = 1024
DEFAULT_READ_SIZE = 256 * 1024  # builder I/O buffer, never affects output
FILE_HASH_READ_SIZE = 1024 * 1024  # plain whole-file hashing

# Outboard layout
LENGTH_HEADER_SIZE = 8  # little-endian u64
PARENT_SIZE = 2 * HASH_SIZE  # left cv + right cv
OUTBOARD_EXTENSION = ".obao"

# AEAD constants (XChaCha20-Poly1305)
XCHACHA_KEY_SIZE = 32
XCHACHA_NONCE_SIZE = 24
XCHACHA_TAG_SIZE = 16

CONFIG_DIR = ".chunkseal"  # under the user's home directory
