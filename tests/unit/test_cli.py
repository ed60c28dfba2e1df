"""Unit tests for the newline-delimited JSON command line"""

import io
import json

import pytest

from commission_gateway import cli
from commission_gateway.cli import InvalidRecordError, main, parse_record, process_stream
from commission_gateway.domain.exceptions import BinLookupError, UpstreamErrorKind
from commission_gateway.infrastructure.cache import FileSystemCache
from commission_gateway.infrastructure.clients.binlist import BinListClient


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep pytest's log capture handlers on the root logger"""
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)


@pytest.fixture
def settings_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("EXCHANGE_RATES_API_KEY", "test-key")
    monkeypatch.setenv("CACHE_BACKEND", "memory")


def test_parse_record_accepts_numeric_strings():
    record = parse_record('{"bin": "45717360", "amount": "100.00", "currency": "EUR"}')

    assert record == {"bin": "45717360", "amount": 100.0, "currency": "EUR"}


@pytest.mark.parametrize(
    "line",
    [
        "not json",
        "[]",
        '{"bin": "45717360", "amount": "100.00"}',
        '{"bin": 45717360, "amount": "100.00", "currency": "EUR"}',
        '{"bin": "45717360", "amount": "ten", "currency": "EUR"}',
        '{"bin": "45717360", "amount": true, "currency": "EUR"}',
        '{"bin": "45717360", "amount": null, "currency": "EUR"}',
        '{"bin": "45717360", "amount": "100.00", "currency": 978}',
    ],
)
def test_parse_record_rejects_malformed_lines(line):
    with pytest.raises(InvalidRecordError):
        parse_record(line)


def test_process_stream_prints_one_commission_per_valid_line(make_calculator):
    calculator = make_calculator(country_code="US", rate=1.1)
    lines = io.StringIO(
        "\n".join(
            [
                json.dumps({"bin": "516793", "amount": "50.00", "currency": "USD"}),
                "",
                "{broken",
                json.dumps({"bin": "12", "amount": "50.00", "currency": "USD"}),
                json.dumps({"bin": "516793", "amount": -5, "currency": "USD"}),
                json.dumps({"bin": "516793", "amount": 0, "currency": "usd"}),
            ]
        )
    )
    out = io.StringIO()

    written = process_stream(lines, calculator, out)

    assert written == 2
    assert out.getvalue().splitlines() == ["0.91", "0.00"]


def test_process_stream_continues_after_processing_error(make_calculator, caplog):
    """A failing transaction is logged and the batch carries on"""
    calculator = make_calculator(
        country_error=BinLookupError("BIN lookup failed due to API rate limit (429).", UpstreamErrorKind.RATE_LIMITED, 429)
    )
    lines = io.StringIO(
        json.dumps({"bin": "45717360", "amount": "100.00", "currency": "EUR"})
        + "\n"
        + json.dumps({"bin": "45717361", "amount": "100.00", "currency": "EUR"})
        + "\n"
    )
    out = io.StringIO()

    written = process_stream(lines, calculator, out)

    assert written == 0
    assert out.getvalue() == ""
    assert calculator.country_resolver.calls == ["45717360", "45717361"]
    assert "[Processing Error] Line 1" in caplog.text
    assert "[Processing Error] Line 2" in caplog.text


def test_process_stream_reports_invalid_rate(make_calculator, caplog):
    calculator = make_calculator(country_code="US", rate=0.0)
    lines = io.StringIO(json.dumps({"bin": "45717360", "amount": "1.00", "currency": "JPY"}) + "\n")

    assert process_stream(lines, calculator, io.StringIO()) == 0
    assert "Invalid exchange rate received" in caplog.text


def test_main_prints_commissions(settings_env, tmp_path, monkeypatch, make_calculator, capsys):
    input_file = tmp_path / "input.txt"
    input_file.write_text(
        json.dumps({"bin": "45717360", "amount": "100.00", "currency": "EUR"}) + "\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(cli, "build_calculator", lambda settings: make_calculator(country_code="DK", rate=1.0))

    assert main([str(input_file)]) == 0
    assert capsys.readouterr().out == "1.00\n"


def test_main_missing_argument(settings_env):
    assert main([]) == cli.EXIT_USAGE


def test_main_missing_input_file(settings_env, tmp_path):
    assert main([str(tmp_path / "missing.txt")]) == cli.EXIT_USAGE


def test_main_requires_api_key(settings_env, monkeypatch, tmp_path):
    monkeypatch.setenv("EXCHANGE_RATES_API_KEY", "")
    input_file = tmp_path / "input.txt"
    input_file.write_text("", encoding="utf-8")

    assert main([str(input_file)]) == cli.EXIT_CONFIG


def test_main_rejects_invalid_settings(settings_env, monkeypatch, tmp_path):
    monkeypatch.setenv("CACHE_BACKEND", "redis")

    assert main([str(tmp_path / "input.txt")]) == cli.EXIT_CONFIG


def test_process_stream_survives_amount_beyond_default_precision(make_calculator):
    """A finite amount with more digits than the default Decimal context still prints"""
    calculator = make_calculator(country_code="DK", rate=1.0)
    lines = io.StringIO(
        '{"bin": "45717360", "amount": 1e29, "currency": "EUR"}\n'
        + json.dumps({"bin": "45717360", "amount": "100.00", "currency": "EUR"})
        + "\n"
    )
    out = io.StringIO()

    assert process_stream(lines, calculator, out) == 2
    printed = out.getvalue().splitlines()
    assert float(printed[0]) == pytest.approx(1e27)
    assert printed[1] == "1.00"


def test_parse_record_rejects_integer_too_large_for_float():
    with pytest.raises(InvalidRecordError):
        parse_record('{"bin": "45717360", "amount": 1' + "0" * 400 + ', "currency": "EUR"}')


def test_process_stream_skips_integer_too_large_for_float(make_calculator):
    calculator = make_calculator(country_code="DK", rate=1.0)
    lines = io.StringIO(
        '{"bin": "45717360", "amount": 1' + "0" * 400 + ', "currency": "EUR"}\n'
        + json.dumps({"bin": "45717360", "amount": "100.00", "currency": "EUR"})
        + "\n"
    )
    out = io.StringIO()

    assert process_stream(lines, calculator, out) == 1
    assert out.getvalue() == "1.00\n"


def test_process_stream_survives_unwritable_cache(make_calculator, bin_upstream, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    bin_upstream.respond_json({"country": {"alpha2": "DE"}})
    calculator = make_calculator(rate=1.0)
    calculator.country_resolver = BinListClient(
        client=bin_upstream.client("https://lookup.binlist.test/"),
        cache=FileSystemCache(blocker / "cache"),
    )
    lines = io.StringIO(
        json.dumps({"bin": "45717360", "amount": "100.00", "currency": "EUR"})
        + "\n"
        + json.dumps({"bin": "45717360", "amount": "250.00", "currency": "EUR"})
        + "\n"
    )
    out = io.StringIO()

    assert process_stream(lines, calculator, out) == 2
    assert out.getvalue().splitlines() == ["1.00", "2.50"]


class FlakyCountryResolver:
    """Raises an unexpected error for one BIN only"""

    def __init__(self, failing_bin: str):
        self.failing_bin = failing_bin

    def resolve_country(self, bin: str) -> str:
        if bin == self.failing_bin:
            raise RuntimeError("resolver crashed")
        return "DE"


def test_process_stream_continues_after_unexpected_error(make_calculator, caplog):
    calculator = make_calculator(rate=1.0)
    calculator.country_resolver = FlakyCountryResolver("45717360")
    lines = io.StringIO(
        json.dumps({"bin": "45717360", "amount": "100.00", "currency": "EUR"})
        + "\n"
        + json.dumps({"bin": "45717361", "amount": "100.00", "currency": "EUR"})
        + "\n"
    )
    out = io.StringIO()

    assert process_stream(lines, calculator, out) == 1
    assert out.getvalue() == "1.00\n"
    assert "[Processing Error] Line 1: Unexpected error: resolver crashed" in caplog.text
