from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Optional, Sequence

from ..config import load_debug_enabled
from ..diagnostics import LastParseRecorder
from ..domain.models import ParsedReceipt
from ..domain.review import reconcile
from ..errors import OcrError, SettingsError
from ..logging import get_logger
from ..paths import expand_abs
from ..pipeline import ReceiptService, build_ocr_provider
from ..settings import open_store

LOG = get_logger("cli-main")


def _emit(receipt: ParsedReceipt, service: Optional[ReceiptService] = None) -> None:
    # With a service, print the filled-in review draft instead of the raw parse.
    payload = service.review_draft(receipt).to_dict() if service is not None else receipt.to_dict()
    check = reconcile(receipt)
    payload["reconciliation"] = check.to_dict()
    if check.mismatch:
        LOG.warning(
            f"Items sum to {check.items_cents} cents but the parsed total is {check.total_cents}"
        )
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _service(ns: argparse.Namespace, *, with_ocr: bool = False) -> ReceiptService:
    cwd = os.getcwd()
    recorder = LastParseRecorder() if (ns.debug or load_debug_enabled(cwd)) else None
    ocr = build_ocr_provider(cwd, getattr(ns, "backend", None)) if with_ocr else None
    return ReceiptService(open_store(cwd), ocr=ocr, observer=recorder)


def _parse(ns: argparse.Namespace) -> int:
    if ns.file:
        path = expand_abs(ns.file)
        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as exc:
            LOG.error(f"Cannot read {path}: {exc}")
            return 2
    else:
        text = sys.stdin.read()
    service = _service(ns)
    receipt = service.parse_text(text)
    _emit(receipt, service if ns.draft else None)
    return 0


def _scan(ns: argparse.Namespace) -> int:
    path = expand_abs(ns.image)
    if not os.path.isfile(path):
        LOG.error(f"Image not found: {path}")
        return 2
    service = _service(ns, with_ocr=True)
    try:
        receipt = service.process_image(path)
    except OcrError as exc:
        LOG.error(str(exc))
        return 1
    _emit(receipt, service if ns.draft else None)
    if service.observer is not None:
        LOG.debug(json.dumps(service.observer.snapshot()["ocr"], ensure_ascii=False))
    return 0


def _rules(ns: argparse.Namespace) -> int:
    store = open_store(os.getcwd())
    if ns.rules_cmd == "list":
        for rule in store.keyword_rules():
            print(f"{rule.keyword}\t{rule.category}")
        return 0
    if ns.rules_cmd == "add":
        try:
            rule = store.add_keyword_rule(ns.keyword, ns.category)
        except SettingsError as exc:
            LOG.error(str(exc))
            return 2
        print(f"{rule.keyword}\t{rule.category}")
        return 0
    if not store.remove_keyword_rule(ns.keyword):
        LOG.error(f"No rule for '{ns.keyword}'")
        return 1
    return 0


def _currency(ns: argparse.Namespace) -> int:
    store = open_store(os.getcwd())
    if ns.code:
        try:
            store.set_currency(ns.code)
        except SettingsError as exc:
            LOG.error(str(exc))
            return 2
    print(store.currency())
    return 0


def _categorize(ns: argparse.Namespace) -> int:
    print(_service(ns).categorize(ns.name))
    return 0


def _serve(ns: argparse.Namespace) -> int:
    from ..pipeline.api import create_app
    import uvicorn

    recorder = LastParseRecorder() if (ns.debug or load_debug_enabled(os.getcwd())) else None
    app = create_app(
        open_store(os.getcwd()),
        recorder=recorder,
        allow_origins=ns.allow_origins,
    )
    uvicorn.run(app, host=ns.host, port=ns.port, log_level=ns.log_level)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="receipt-tracker",
        description="Extract merchant, date, totals and categorized items from receipt OCR text.",
    )
    parser.add_argument("--debug", action="store_true", help="Record the last OCR/parse result for inspection")
    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_cmd = subparsers.add_parser("parse", help="Parse OCR text from a file or stdin and print JSON.")
    parse_cmd.add_argument("--file", help="Text file to parse (default: stdin)")
    parse_cmd.add_argument("--draft", action="store_true", help="Print the review draft with missing values filled in")
    parse_cmd.set_defaults(handler=_parse)

    scan_cmd = subparsers.add_parser("scan", help="OCR a receipt image, then parse it.")
    scan_cmd.add_argument("--image", required=True)
    scan_cmd.add_argument("--backend", choices=["ollama", "tesseract"], help="Override RECEIPT_OCR_BACKEND")
    scan_cmd.add_argument("--draft", action="store_true", help="Print the review draft with missing values filled in")
    scan_cmd.set_defaults(handler=_scan)

    rules_cmd = subparsers.add_parser("rules", help="Manage user keyword rules.")
    rules_sub = rules_cmd.add_subparsers(dest="rules_cmd", required=True)
    rules_sub.add_parser("list", help="Show user rules in priority order")
    add = rules_sub.add_parser("add", help="Add or replace a rule")
    add.add_argument("keyword")
    add.add_argument("category")
    remove = rules_sub.add_parser("remove", help="Delete a rule")
    remove.add_argument("keyword")
    rules_cmd.set_defaults(handler=_rules)

    cat_cmd = subparsers.add_parser("categorize", help="Print the category for an item name.")
    cat_cmd.add_argument("name")
    cat_cmd.set_defaults(handler=_categorize)

    cur_cmd = subparsers.add_parser("currency", help="Show or set the currency used for review drafts.")
    cur_cmd.add_argument("code", nargs="?", help="3-letter code, e.g. EUR")
    cur_cmd.set_defaults(handler=_currency)

    serve_cmd = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve_cmd.add_argument("--host", default="127.0.0.1")
    serve_cmd.add_argument("--port", type=int, default=8001)
    serve_cmd.add_argument("--log-level", default="info")
    serve_cmd.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )
    serve_cmd.set_defaults(handler=_serve)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.debug(f"CLI invoked with arguments: {provided}")
    args = build_parser().parse_args(provided)
    code = args.handler(args)
    LOG.debug(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
