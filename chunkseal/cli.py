"""
chunkseal CLI — build and check verified-chunk outboards.

Commands:
  chunkseal hash          - Plain BLAKE3 digest of a file
  chunkseal encode        - Compute root fingerprint and write the outboard
  chunkseal verify        - Verify one chunk against outboard + root
  chunkseal slice         - Cut a verifiable slice for a byte window
  chunkseal decode-slice  - Verify a slice and write the window bytes
  chunkseal encrypt       - Encrypt a file (XChaCha20-Poly1305)
  chunkseal decrypt       - Decrypt a file
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
from pathlib import Path

from chunkseal import __version__

# Strict hex pattern for 32-byte root fingerprints
_ROOT_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def _setup_logging(args: argparse.Namespace, level_name: str) -> None:
    level = logging.DEBUG if getattr(args, "verbose", False) else getattr(logging, level_name.upper())
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


def _load_tree_config(args: argparse.Namespace):
    """Resolve tree parameters: --chunk-size > env > config file > defaults."""
    from chunkseal.config import TreeConfig, load_config

    try:
        config = load_config(args.config)
        if args.chunk_size is not None:
            config = TreeConfig(
                chunk_size=args.chunk_size,
                read_size=config.read_size,
                log_level=config.log_level,
            )
    except ValueError as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)
    return config


def _parse_root(root_hex: str) -> bytes:
    root_hex = root_hex.strip()
    if not _ROOT_RE.match(root_hex):
        print(
            f"Error: Root must be 64 hex chars, got {root_hex!r}",
            file=sys.stderr,
        )
        sys.exit(1)
    return bytes.fromhex(root_hex)


def _read_file(path_str: str, what: str = "File") -> bytes:
    path = Path(path_str)
    if not path.is_file():
        print(f"Error: {what} not found: {path}", file=sys.stderr)
        sys.exit(1)
    return path.read_bytes()


def _read_key(path_str: str) -> bytes:
    """Key files hold 32 raw bytes or 64 hex characters."""
    from chunkseal import XCHACHA_KEY_SIZE

    raw = _read_file(path_str, "Key file")
    text = raw.strip()
    if len(text) == 2 * XCHACHA_KEY_SIZE:
        try:
            return bytes.fromhex(text.decode("ascii"))
        except (UnicodeDecodeError, ValueError):
            pass
    if len(raw) != XCHACHA_KEY_SIZE:
        print(
            f"Error: Key file must hold {XCHACHA_KEY_SIZE} raw bytes or "
            f"{2 * XCHACHA_KEY_SIZE} hex chars",
            file=sys.stderr,
        )
        sys.exit(1)
    return raw


def cmd_hash(args: argparse.Namespace, config) -> None:
    """Plain BLAKE3 digest of a file."""
    from chunkseal.errors import SourceReadError
    from chunkseal.hashing import hash_blake3_file

    try:
        digest = hash_blake3_file(args.path)
    except SourceReadError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"{digest.hex()}  {args.path}")


def cmd_encode(args: argparse.Namespace, config) -> None:
    """Compute the root fingerprint of a file and write its outboard."""
    from chunkseal import OUTBOARD_EXTENSION
    from chunkseal._format.writer import OutboardWriter
    from chunkseal.encoder import encode_file
    from chunkseal.errors import SourceReadError

    try:
        result = encode_file(args.path, chunk_size=config.chunk_size, read_size=config.read_size)
    except SourceReadError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    out_path = Path(args.output) if args.output else Path(args.path + OUTBOARD_EXTENSION)
    OutboardWriter.write(result.outboard, out_path)

    print(f"Encoded {args.path} ({result.content_length} bytes)")
    print(f"  root:       {result.hash_hex}")
    print(f"  outboard:   {out_path} ({len(result.outboard)} bytes)")
    print(f"  chunk size: {config.chunk_size}")


def cmd_verify(args: argparse.Namespace, config) -> None:
    """Verify a chunk against an outboard and a trusted root."""
    from chunkseal.verify import verify_chunk

    root = _parse_root(args.root)
    chunk = _read_file(args.path, "Chunk file")
    outboard = _read_file(args.outboard, "Outboard")

    result = verify_chunk(chunk, args.offset, outboard, root, chunk_size=config.chunk_size)
    if result:
        print(f"OK: chunk {result.chunk_index} at offset {args.offset} verified")
    else:
        print(f"FAIL: {result.outcome.value}: {result.detail}", file=sys.stderr)
        if result.refetch_chunk:
            print("  the chunk is corrupt; fetch it again", file=sys.stderr)
        else:
            print("  the outboard or request is invalid", file=sys.stderr)
        sys.exit(1)


def cmd_slice(args: argparse.Namespace, config) -> None:
    """Cut a slice for a byte window out of a file and its outboard."""
    from chunkseal.errors import MalformedOutboard, SourceReadError
    from chunkseal.slices import extract_slice

    outboard = _read_file(args.outboard, "Outboard")
    content_path = Path(args.path)
    if not content_path.is_file():
        print(f"Error: File not found: {content_path}", file=sys.stderr)
        sys.exit(1)

    try:
        with open(content_path, "rb") as f:
            data = extract_slice(
                outboard, f, args.offset, args.length, chunk_size=config.chunk_size,
            )
    except (MalformedOutboard, SourceReadError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    Path(args.output).write_bytes(data)
    print(f"Slice [{args.offset}, +{args.length}) -> {args.output} ({len(data)} bytes)")


def cmd_decode_slice(args: argparse.Namespace, config) -> None:
    """Verify a slice and write out the window bytes."""
    from chunkseal.errors import VerificationError
    from chunkseal.slices import decode_slice

    root = _parse_root(args.root)
    data = _read_file(args.path, "Slice file")

    try:
        content = decode_slice(data, root, args.offset, args.length, chunk_size=config.chunk_size)
    except VerificationError as e:
        print(f"FAIL: {e.outcome.value}: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.output:
        Path(args.output).write_bytes(content)
        print(f"OK: {len(content)} verified bytes -> {args.output}")
    else:
        sys.stdout.buffer.write(content)


def cmd_encrypt(args: argparse.Namespace, config) -> None:
    """Encrypt a file with XChaCha20-Poly1305."""
    from chunkseal.crypto import encrypt_with_key

    key = _read_key(args.key_file)
    path = Path(args.path)
    plaintext = _read_file(args.path)

    try:
        payload = encrypt_with_key(plaintext, key)
    except ImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    out_path = Path(args.output) if args.output else path.with_suffix(path.suffix + ".enc")
    out_path.write_bytes(payload.to_bytes())
    print(f"Encrypted {path} -> {out_path} ({len(payload.to_bytes())} bytes)")


def cmd_decrypt(args: argparse.Namespace, config) -> None:
    """Decrypt a file produced by 'chunkseal encrypt'."""
    from chunkseal.crypto import EncryptedPayload, decrypt_with_key

    key = _read_key(args.key_file)
    path = Path(args.path)

    try:
        payload = EncryptedPayload.from_bytes(_read_file(args.path))
        plaintext = decrypt_with_key(payload, key)
    except (ValueError, ImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.output:
        out_path = Path(args.output)
    elif path.suffix == ".enc":
        out_path = path.with_suffix("")
    else:
        out_path = path.with_suffix(".dec")

    out_path.write_bytes(plaintext)
    print(f"Decrypted {path} -> {out_path} ({len(plaintext)} bytes)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chunkseal",
        description="chunkseal — verified chunk distribution for large binary payloads.",
    )
    parser.add_argument("--version", action="version", version=f"chunkseal {__version__}")
    parser.add_argument("--config", help="Config file (default: ~/.chunkseal/config.toml)")
    parser.add_argument(
        "--chunk-size",
        type=int,
        help="Tree chunk size in bytes; must match between encode and verify",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # hash
    p_hash = sub.add_parser("hash", help="Plain BLAKE3 digest of a file")
    p_hash.add_argument("path", help="File to hash")

    # encode
    p_enc = sub.add_parser("encode", help="Compute root fingerprint and outboard")
    p_enc.add_argument("path", help="Content file")
    p_enc.add_argument("-o", "--output", help="Outboard path (default: <file>.obao)")

    # verify
    p_ver = sub.add_parser("verify", help="Verify one chunk")
    p_ver.add_argument("path", help="File holding exactly the chunk bytes")
    p_ver.add_argument("--offset", type=int, required=True, help="Chunk offset in the content")
    p_ver.add_argument("--outboard", required=True, help="Outboard file")
    p_ver.add_argument("--root", required=True, help="Trusted root fingerprint (hex)")

    # slice
    p_sl = sub.add_parser("slice", help="Cut a verifiable slice for a byte window")
    p_sl.add_argument("path", help="Content file")
    p_sl.add_argument("--outboard", required=True, help="Outboard file")
    p_sl.add_argument("--offset", type=int, required=True, help="Window start")
    p_sl.add_argument("--length", type=int, required=True, help="Window length")
    p_sl.add_argument("-o", "--output", required=True, help="Output slice file")

    # decode-slice
    p_ds = sub.add_parser("decode-slice", help="Verify a slice and extract its bytes")
    p_ds.add_argument("path", help="Slice file")
    p_ds.add_argument("--root", required=True, help="Trusted root fingerprint (hex)")
    p_ds.add_argument("--offset", type=int, required=True, help="Window start")
    p_ds.add_argument("--length", type=int, required=True, help="Window length")
    p_ds.add_argument("-o", "--output", help="Output file (default: stdout)")

    # encrypt / decrypt
    p_en = sub.add_parser("encrypt", help="Encrypt a file (XChaCha20-Poly1305)")
    p_en.add_argument("path", help="File to encrypt")
    p_en.add_argument("--key-file", required=True, help="32-byte key (raw or hex)")
    p_en.add_argument("-o", "--output", help="Output file path")

    p_de = sub.add_parser("decrypt", help="Decrypt a file")
    p_de.add_argument("path", help="Encrypted file")
    p_de.add_argument("--key-file", required=True, help="32-byte key (raw or hex)")
    p_de.add_argument("-o", "--output", help="Output file path")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        print("chunkseal — verified chunk distribution")
        print()
        print("Usage:")
        print("  chunkseal hash <file>")
        print("  chunkseal encode <file> [-o file.obao]")
        print("  chunkseal verify <chunk> --offset N --outboard file.obao --root HEX")
        print("  chunkseal slice <file> --outboard file.obao --offset N --length N -o out.slice")
        print("  chunkseal decode-slice <slice> --root HEX --offset N --length N [-o out]")
        print("  chunkseal encrypt <file> --key-file key.bin")
        print("  chunkseal decrypt <file.enc> --key-file key.bin")
        print()
        print("Run 'chunkseal <command> --help' for details on any command.")
        sys.exit(0)

    config = _load_tree_config(args)
    _setup_logging(args, config.log_level)

    commands = {
        "hash": cmd_hash,
        "encode": cmd_encode,
        "verify": cmd_verify,
        "slice": cmd_slice,
        "decode-slice": cmd_decode_slice,
        "encrypt": cmd_encrypt,
        "decrypt": cmd_decrypt,
    }
    commands[args.command](args, config)


if __name__ == "__main__":
    main()
