import json

import pytest

from sped_profiler import __version__
from sped_profiler.cli import main


def _line(code: str, length: int, values: dict[int, str]) -> str:
    fields = [""] * length
    fields[1] = code
    for index, value in values.items():
        fields[index] = value
    return "|".join(fields)


LINES = [
    _line("0000", 16, {7: "12345678000190", 8: "ACME LTDA", 9: "0"}),
    _line("C100", 29, {2: "1", 5: "55", 10: "15012023", 12: "10000,00"}),
    _line("E520", 10, {3: "400,00"}),
    "|9999|4|",
]


@pytest.fixture
def ledger_file(tmp_path):
    path = tmp_path / "efd.txt"
    path.write_text("\n".join(LINES) + "\n", encoding="latin-1")
    return path


def test_version(capsys) -> None:
    """--version prints the package version and exits."""
    main(["--version"])

    assert capsys.readouterr().out.strip() == f"sped_profiler version {__version__}"


def test_files_are_required(capsys) -> None:
    """Running without ledger files is a usage error."""
    with pytest.raises(SystemExit) as excinfo:
        main([])

    assert excinfo.value.code == 2
    assert "at least one ledger FILE" in capsys.readouterr().err


def test_missing_file_is_a_usage_error(tmp_path, capsys) -> None:
    """Unreadable inputs are reported through argparse."""
    with pytest.raises(SystemExit):
        main([str(tmp_path / "missing.txt")])

    assert "Ledger file not found" in capsys.readouterr().err


def test_invalid_config_is_a_usage_error(tmp_path, ledger_file, capsys) -> None:
    """Configuration errors are reported through argparse."""
    config = tmp_path / "bad.toml"
    config.write_text('[engine]\ndefault_family = "payroll"\n', encoding="utf-8")

    with pytest.raises(SystemExit):
        main([str(ledger_file), "--config", str(config)])

    assert "default_family" in capsys.readouterr().err


def test_table_mode(ledger_file, capsys, monkeypatch, tmp_path) -> None:
    """The default mode prints the record counts and the profile table."""
    monkeypatch.chdir(tmp_path)

    main([str(ledger_file)])

    out = capsys.readouterr().out
    assert "=== Records ===" in out
    assert "=== Fiscal profile ===" in out
    assert "monthlyRevenue" in out
    assert "document_density" in out


def test_json_mode(ledger_file, capsys, monkeypatch, tmp_path) -> None:
    """JSON mode prints the canonical profile only."""
    monkeypatch.chdir(tmp_path)

    main([str(ledger_file), "--display-mode", "json"])

    data = json.loads(capsys.readouterr().out)
    assert data["company"]["name"] == "ACME LTDA"
    assert data["company"]["activityType"] == "industry"
    assert data["fiscalParameters"]["taxComposition"]["debits"]["ipi"] == 400.0
    assert data["metadata"]["ledgerFamily"] == "fiscal"


def test_both_mode_writes_files(ledger_file, capsys, monkeypatch, tmp_path) -> None:
    """'both' also writes the JSON profile and the CSV table."""
    monkeypatch.chdir(tmp_path)
    output_dir = tmp_path / "out"

    main([str(ledger_file), "--display-mode", "both", "--output", str(output_dir)])

    json_files = list(output_dir.glob("profile_*.json"))
    csv_files = list(output_dir.glob("profile_*.csv"))
    assert len(json_files) == 1
    assert len(csv_files) == 1

    data = json.loads(json_files[0].read_text(encoding="utf-8"))
    assert data["company"]["taxId"] == "12345678000190"
    assert csv_files[0].read_text(encoding="utf-8").startswith(
        "section,key,value,source"
    )
    assert "Wrote" in capsys.readouterr().out


def test_explicit_family(tmp_path, capsys, monkeypatch) -> None:
    """--family applies to every file, even without a header."""
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "headerless.txt"
    path.write_text(LINES[1] + "\n", encoding="utf-8")

    main([str(path), "--family", "fiscal", "--display-mode", "json"])

    data = json.loads(capsys.readouterr().out)
    assert data["company"]["monthlyRevenue"] == 10000.0
