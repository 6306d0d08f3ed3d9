"""
Unit tests for the main module — composition root and command line.

Tests verify structlog configuration, argument parsing, and exit codes,
using real files under tmp_path.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import structlog
from cryptography.hazmat.primitives.asymmetric import ec

from corim_signer.main import build_parser, configure_structlog, main
from tests.conftest import ec_jwk, jwk_bytes, make_corim_cbor, make_meta_json


@pytest.fixture()
def inputs(tmp_path: Path, ec_key: ec.EllipticCurvePrivateKey) -> dict[str, Path]:
    files = {
        "corim": tmp_path / "unsigned-corim.cbor",
        "meta": tmp_path / "meta.json",
        "key": tmp_path / "key.jwk",
    }
    files["corim"].write_bytes(make_corim_cbor())
    files["meta"].write_bytes(make_meta_json())
    files["key"].write_bytes(jwk_bytes(ec_jwk(ec_key)))
    return files


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("CORIM_SIGN_LOG_LEVEL", "CORIM_SIGN_OUTPUT_PREFIX", "CORIM_SIGN_OUTPUT_FILE_MODE"):
        monkeypatch.delenv(name, raising=False)


class TestConfigureStructlog:
    """Verify structlog configuration function."""

    def test_configure_structlog_sets_log_level(self) -> None:
        """
        GIVEN log_level="WARNING"
        WHEN configure_structlog is called
        THEN structlog is configured (no exception raised).
        """
        configure_structlog("WARNING")
        assert structlog.get_logger() is not None

    def test_configure_structlog_invalid_level_falls_back(self) -> None:
        """
        GIVEN an invalid log_level string
        WHEN configure_structlog is called
        THEN it falls back to INFO (no crash).
        """
        configure_structlog("NONEXISTENT")
        assert structlog.get_logger() is not None

    def test_logs_go_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_structlog("INFO")
        structlog.get_logger().info("probe.event")
        captured = capsys.readouterr()
        assert "probe.event" in captured.err
        assert captured.out == ""


class TestBuildParser:
    def test_short_and_long_flags(self) -> None:
        args = build_parser().parse_args(["-f", "c.cbor", "--meta=m.json", "-k", "k.jwk", "-o", "out"])
        assert (args.corim_file, args.meta_file, args.key_file, args.output_file) == (
            "c.cbor", "m.json", "k.jwk", "out",
        )
        assert args.cert_file is None
        assert args.intermediates_file is None


class TestMain:
    def test_success_prints_confirmation(
        self, inputs: dict[str, Path], capsys: pytest.CaptureFixture[str]
    ) -> None:
        """
        GIVEN valid CoRIM, meta and key files and no --output
        WHEN main() runs
        THEN it exits 0, writes signed-<name> beside the CoRIM, and confirms on stdout.
        """
        code = main(["-f", str(inputs["corim"]), "-m", str(inputs["meta"]), "-k", str(inputs["key"])])

        expected = inputs["corim"].with_name("signed-unsigned-corim.cbor")
        assert code == 0
        assert expected.read_bytes().startswith(b"\xd2")
        assert capsys.readouterr().out.strip() == f'>> "{inputs["corim"]}" signed and saved to "{expected}"'

    def test_missing_key_flag(self, inputs: dict[str, Path], capsys: pytest.CaptureFixture[str]) -> None:
        code = main(["-f", str(inputs["corim"]), "-m", str(inputs["meta"])])
        captured = capsys.readouterr()
        assert code == 1
        assert "Error: no key supplied" in captured.err
        assert captured.out == ""

    def test_unreadable_meta(self, inputs: dict[str, Path], capsys: pytest.CaptureFixture[str]) -> None:
        missing = inputs["meta"].with_name("absent.json")
        code = main(["-f", str(inputs["corim"]), "-m", str(missing), "-k", str(inputs["key"])])
        assert code == 1
        assert f"error loading CoRIM Meta from {missing}" in capsys.readouterr().err

    def test_failure_writes_no_output(self, inputs: dict[str, Path], tmp_path: Path) -> None:
        inputs["key"].write_bytes(b"{}")
        output = tmp_path / "out.cose"
        code = main([
            "-f", str(inputs["corim"]), "-m", str(inputs["meta"]), "-k", str(inputs["key"]), "-o", str(output),
        ])
        assert code == 1
        assert not output.exists()

    def test_bad_environment_setting(
        self, inputs: dict[str, Path], monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setenv("CORIM_SIGN_LOG_LEVEL", "chatty")
        code = main(["-f", str(inputs["corim"]), "-m", str(inputs["meta"]), "-k", str(inputs["key"])])
        assert code == 1
        assert "configuration error" in capsys.readouterr().err
