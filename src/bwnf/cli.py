from __future__ import annotations

import argparse
import json
from pathlib import Path

from . import config
from .container import codec
from .crypto.alg_registry import ALGORITHMS
from .crypto.keyloader import KeyDirectory, generate_keypair, load_private_key_file, load_public_key_file
from .errors import NFTError
from .service import DocumentService


def _service(args: argparse.Namespace) -> DocumentService:
    # unset flags fall back to BWNF_CREATOR_KEYS / BWNF_PLATFORM_PUBLIC_KEY
    creator_keys = getattr(args, "creator_keys", None)
    platform_key = getattr(args, "platform_key", None)
    return DocumentService(
        key_directory=KeyDirectory.from_file(creator_keys) if creator_keys else None,
        platform_public_key=load_public_key_file(platform_key) if platform_key else None,
    )


def cmd_keygen(args: argparse.Namespace) -> int:
    out = Path(args.out_dir)
    out.mkdir(parents=True, exist_ok=True)
    priv_pem, pub_pem = generate_keypair(args.alg)
    (out / f"{args.name}_sk.pem").write_text(priv_pem, encoding="utf-8")
    (out / f"{args.name}_pk.pem").write_text(pub_pem, encoding="utf-8")
    print(f"wrote {out / (args.name + '_sk.pem')} and {out / (args.name + '_pk.pem')}")
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    info = codec.inspect(Path(args.input).read_bytes())
    print(json.dumps(info, indent=2, sort_keys=True))
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    svc = _service(args)
    try:
        svc.verify(svc.read(Path(args.input).read_bytes()))
    except NFTError as e:
        print(json.dumps({"ok": False, "error": type(e).__name__, "detail": str(e)}))
        return 1
    print(json.dumps({"ok": True}))
    return 0


def cmd_sign(args: argparse.Namespace) -> int:
    svc = _service(args)
    file = svc.read(Path(args.input).read_bytes())
    signed = svc.sign(file, load_private_key_file(args.key))
    buf = svc.write(signed, args.fmt)
    Path(args.output).write_bytes(buf)
    print(f"wrote {args.output} ({len(buf)} bytes)")
    return 0


def cmd_convert(args: argparse.Namespace) -> int:
    svc = _service(args)
    buf = svc.write(svc.read(Path(args.input).read_bytes()), args.to)
    Path(args.output).write_bytes(buf)
    print(f"wrote {args.output} ({len(buf)} bytes)")
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser("bwnf")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_key = sub.add_parser("keygen")
    p_key.add_argument("--out-dir", dest="out_dir", required=True)
    p_key.add_argument("--name", default="creator")
    p_key.add_argument("--alg", choices=list(ALGORITHMS), default=config.DEFAULT_ALGORITHM)
    p_key.set_defaults(func=cmd_keygen)

    p_ins = sub.add_parser("inspect")
    p_ins.add_argument("input")
    p_ins.set_defaults(func=cmd_inspect)

    p_ver = sub.add_parser("verify")
    p_ver.add_argument("input")
    p_ver.add_argument("--creator-keys", dest="creator_keys")
    p_ver.add_argument("--platform-key", dest="platform_key")
    p_ver.set_defaults(func=cmd_verify)

    p_sign = sub.add_parser("sign")
    p_sign.add_argument("input")
    p_sign.add_argument("--key", required=True)
    p_sign.add_argument("--output", required=True)
    p_sign.add_argument("--fmt", choices=["binary", "json"], default="binary")
    p_sign.set_defaults(func=cmd_sign)

    p_conv = sub.add_parser("convert")
    p_conv.add_argument("input")
    p_conv.add_argument("--to", choices=["binary", "json"], required=True)
    p_conv.add_argument("--output", required=True)
    p_conv.set_defaults(func=cmd_convert)

    args = p.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
