"""
Slip Verifier — Entry Point
Verify a payment slip (or a folder of slips) against the amount owed.

    python main.py verify slip.jpg --required 750
    python main.py batch ./slips --required 750 --output report.xlsx
"""

import argparse
import json
import logging
import sys

from slip_verifier.config import VerifierConfig
from slip_verifier.core.errors import SlipVerificationError
from slip_verifier.core.image_loader import load_images_from_folder
from slip_verifier.core.verifier import SlipVerifier
from slip_verifier.export.excel_exporter import export_to_excel
from slip_verifier.utils.logger import setup_logging
from slip_verifier.utils.validators import parse_required_amount, validate_document_path

EXIT_VERIFIED = 0
EXIT_MISMATCH = 1
EXIT_UNVERIFIABLE = 2


def _amount(value):
    try:
        return parse_required_amount(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def build_parser():
    parser = argparse.ArgumentParser(
        prog="slip-verifier",
        description="Verify the amount printed on a payment slip.",
    )
    parser.add_argument("--tesseract-cmd", default=None, help="Path to the tesseract binary")
    parser.add_argument("--timeout", type=float, default=30.0, help="Per-pass OCR timeout in seconds")
    parser.add_argument("--log-dir", default=None, help="Also write logs to this directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p_verify = sub.add_parser("verify", help="Verify a single slip")
    p_verify.add_argument("document", help="PDF, JPG or PNG slip")
    p_verify.add_argument("--required", type=_amount, required=True, help="Amount owed")
    p_verify.add_argument("--json", action="store_true", help="Print the outcome as JSON")

    p_batch = sub.add_parser("batch", help="Verify every slip in a folder")
    p_batch.add_argument("folder", help="Folder to scan recursively")
    p_batch.add_argument("--required", type=_amount, required=True, help="Amount owed per slip")
    p_batch.add_argument("--output", required=True, help="Excel report path (.xlsx)")
    p_batch.add_argument("--append", action="store_true", help="Append to an existing report")

    return parser


def _run_verify(verifier, args):
    if not validate_document_path(args.document):
        print(f"Not a PDF/JPG/PNG file: {args.document}", file=sys.stderr)
        return EXIT_UNVERIFIABLE

    try:
        outcome = verifier.verify_file(args.document, args.required)
    except SlipVerificationError as e:
        print(f"Could not verify: {e}", file=sys.stderr)
        return EXIT_UNVERIFIABLE

    if args.json:
        print(json.dumps(outcome.to_dict(), indent=2))
    else:
        print(outcome.message)
        if outcome.verified:
            print(f"Verification code: {outcome.verification_code}")
    return EXIT_VERIFIED if outcome.verified else EXIT_MISMATCH


def _run_batch(verifier, args):
    paths = load_images_from_folder(args.folder)
    if not paths:
        print(f"No slips found in {args.folder}", file=sys.stderr)
        return EXIT_UNVERIFIABLE

    def progress(current, total, message):
        print(f"[{current}/{total}] {message}", file=sys.stderr)

    rows, summary = verifier.verify_batch(paths, args.required, progress_callback=progress)
    ok, message = export_to_excel(rows, args.output, append=args.append)
    print(message)
    print(
        f"Verified: {summary['verified']}  Mismatched: {summary['mismatched']}  "
        f"Failed: {summary['failed']}"
    )
    if not ok:
        return EXIT_UNVERIFIABLE
    return EXIT_VERIFIED if summary['mismatched'] == 0 and summary['failed'] == 0 else EXIT_MISMATCH


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING, args.log_dir)

    config = VerifierConfig(
        tesseract_cmd=args.tesseract_cmd,
        pass_timeout_s=args.timeout,
    )
    verifier = SlipVerifier(config=config)

    if args.command == "verify":
        return _run_verify(verifier, args)
    return _run_batch(verifier, args)


if __name__ == "__main__":
    sys.exit(main())
