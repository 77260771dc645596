import contextlib
import io
import json
import os
import tempfile
import unittest
from decimal import Decimal
from unittest.mock import patch

import main
from slip_verifier.core.errors import AmountNotFoundError
from slip_verifier.core.verifier import decide


class TestCli(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.slip = os.path.join(self._tmp.name, "slip.png")
        with open(self.slip, "wb") as f:
            f.write(b"\x89PNG\r\n\x1a\n")

        patcher = patch("main.SlipVerifier")
        self.verifier_cls = patcher.start()
        self.addCleanup(patcher.stop)
        self.verifier = self.verifier_cls.return_value

    def _run(self, *argv):
        out = io.StringIO()
        err = io.StringIO()
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            code = main.main(list(argv))
        return code, out.getvalue(), err.getvalue()

    def test_verified_exit_code(self):
        self.verifier.verify_file.return_value = decide(
            Decimal("750"), Decimal("750"), code_generator=lambda: "654321"
        )

        code, out, _ = self._run("verify", self.slip, "--required", "750")

        self.assertEqual(code, main.EXIT_VERIFIED)
        self.assertIn("654321", out)
        self.verifier.verify_file.assert_called_once_with(self.slip, Decimal("750"))

    def test_mismatch_exit_code(self):
        self.verifier.verify_file.return_value = decide(Decimal("500"), Decimal("750"))

        code, out, _ = self._run("verify", self.slip, "--required", "750")

        self.assertEqual(code, main.EXIT_MISMATCH)
        self.assertIn("Amount mismatch", out)

    def test_json_output(self):
        self.verifier.verify_file.return_value = decide(
            Decimal("750"), Decimal("750"), code_generator=lambda: "654321"
        )

        code, out, _ = self._run("verify", self.slip, "--required", "750", "--json")

        self.assertEqual(code, main.EXIT_VERIFIED)
        payload = json.loads(out)
        self.assertTrue(payload["verified"])
        self.assertEqual(payload["verification_code"], "654321")

    def test_unverifiable_exit_code(self):
        self.verifier.verify_file.side_effect = AmountNotFoundError("No amount found")

        code, _, err = self._run("verify", self.slip, "--required", "750")

        self.assertEqual(code, main.EXIT_UNVERIFIABLE)
        self.assertIn("No amount found", err)

    def test_rejects_unknown_extension(self):
        notes = os.path.join(self._tmp.name, "notes.txt")
        with open(notes, "w") as f:
            f.write("x")

        code, _, _ = self._run("verify", notes, "--required", "750")

        self.assertEqual(code, main.EXIT_UNVERIFIABLE)
        self.verifier.verify_file.assert_not_called()

    def test_invalid_required_amount(self):
        for bad in ("0", "-1", "abc"):
            with self.assertRaises(SystemExit):
                self._run("verify", self.slip, "--required", bad)

    def test_timeout_passed_to_config(self):
        self.verifier.verify_file.return_value = decide(Decimal("750"), Decimal("750"))

        self._run("--timeout", "5", "verify", self.slip, "--required", "750")

        config = self.verifier_cls.call_args.kwargs["config"]
        self.assertEqual(config.pass_timeout_s, 5.0)

    def test_batch_writes_report(self):
        report = os.path.join(self._tmp.name, "report.xlsx")
        self.verifier.verify_batch.return_value = (
            [{"File Name": "slip.png", "Status": "VERIFIED", "Required Amount": "750"}],
            {"verified": 1, "mismatched": 0, "failed": 0, "errors": []},
        )

        code, out, _ = self._run(
            "batch", self._tmp.name, "--required", "750", "--output", report
        )

        self.assertEqual(code, main.EXIT_VERIFIED)
        self.assertTrue(os.path.exists(report))
        self.assertIn("Verified: 1", out)

    def test_batch_empty_folder(self):
        empty = os.path.join(self._tmp.name, "empty")
        os.makedirs(empty)

        code, _, _ = self._run(
            "batch", empty, "--required", "750", "--output", os.path.join(empty, "r.xlsx")
        )

        self.assertEqual(code, main.EXIT_UNVERIFIABLE)


if __name__ == "__main__":
    unittest.main()
