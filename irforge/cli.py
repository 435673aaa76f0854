# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from irforge.config import EngineConfig, load_config
from irforge.errors import IrError
from irforge.forge import Forge


def _build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(prog="irforge", description="Typed LLVM IR tooling (verify, compile, type parsing)")
	p.add_argument("--config", type=Path, default=None, help="Path to an irforge-config JSON file")
	p.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-v info, -vv debug)")
	sub = p.add_subparsers(dest="cmd", required=True)

	verify = sub.add_parser("verify", help="Run the LLVM verifier over a textual IR file")
	verify.add_argument("module", type=Path, help="Path to a .ll file")
	verify.add_argument("--json", action="store_true", help="Emit machine-readable JSON")

	compile_ = sub.add_parser("compile", help="Compile a textual IR file to an object file or assembly")
	compile_.add_argument("module", type=Path, help="Path to a .ll file")
	compile_.add_argument("--out", type=Path, required=True, help="Output path")
	compile_.add_argument("--asm", action="store_true", help="Write target assembly instead of an object file")

	type_ = sub.add_parser("type", help="Parse an LLVM type expression and print its canonical form")
	type_.add_argument("expr", help="Type expression, e.g. 'i32 (i8, [4 x i16])'")
	type_.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
	return p


def _configure_logging(cfg: EngineConfig, verbose: int) -> None:
	level = getattr(logging, cfg.log_level)
	if verbose >= 2:
		level = logging.DEBUG
	elif verbose == 1:
		level = min(level, logging.INFO)
	logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: list[str] | None = None) -> int:
	p = _build_parser()
	args = p.parse_args(argv)

	try:
		cfg = load_config(args.config) if args.config is not None else EngineConfig()
	except (IrError, OSError) as err:
		p.error(str(err))
		return 2
	_configure_logging(cfg, args.verbose)
	forge = Forge(cfg)

	if args.cmd == "verify":
		try:
			reasons = forge.engine.check(args.module.read_text(encoding="utf-8"))
		except (IrError, OSError, UnicodeDecodeError) as err:
			p.error(str(err))
			return 2
		if args.json:
			print(json.dumps({"valid": not reasons, "reasons": reasons}, sort_keys=True, separators=(",", ":")))
		elif reasons:
			for reason in reasons:
				print(f"{args.module}: {reason}", file=sys.stderr)
		else:
			print(f"{args.module}: ok")
		return 1 if reasons else 0

	if args.cmd == "compile":
		try:
			text = args.module.read_text(encoding="utf-8")
			if args.asm:
				forge.engine.emit_assembly(text, args.out)
			else:
				forge.engine.emit_object(text, args.out)
			return 0
		except (IrError, OSError, UnicodeDecodeError) as err:
			p.error(str(err))
			return 2

	if args.cmd == "type":
		with forge.context("cli") as ctx:
			try:
				ty = forge.parse_type(ctx, args.expr)
			except IrError as err:
				p.error(str(err))
				return 2
			obj = {"type": forge.types.render(ty), "kind": forge.types.kind_of(ty).value}
			if args.json:
				print(json.dumps(obj, sort_keys=True, separators=(",", ":")))
			else:
				print(obj["type"])
		return 0

	p.error(f"unknown command {args.cmd!r}")
	return 2


if __name__ == "__main__":
	raise SystemExit(main())
