"""Tests for CLI commands against a mocked SimpleFIN bridge.

Commands are invoked as plain functions and their exit codes, stdout and
stderr are checked. The HTTP layer is replaced through
``simplefin.cli.commands.create_transport``.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from simplefin.cli import commands
from simplefin.cli.exit_codes import ExitCode
from simplefin.core.transport import HttpxTransport

from tests.conftest import ACCESS_URL, CLAIM_URL, encode_setup_token, sample_account_set_json


class FakeBridge:
    """Records requests and serves canned responses keyed by URL path."""

    def __init__(self) -> None:
        self.routes: dict[str, httpx.Response] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.routes.get(request.url.path, httpx.Response(404, text="not found"))

    def query(self, index: int = 0) -> dict[str, list[str]]:
        return parse_qs(urlsplit(str(self.requests[index].url)).query)


@pytest.fixture(autouse=True)
def isolate(monkeypatch, tmp_path):
    """Run each command in an empty directory with no SimpleFIN variables set."""
    for variable in ("SIMPLEFIN_ACCESS_URL", "SIMPLEFIN_BRIDGE_URL", "SIMPLEFIN_USER_AGENT"):
        monkeypatch.delenv(variable, raising=False)
    monkeypatch.chdir(tmp_path)

    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def bridge(monkeypatch) -> FakeBridge:
    fake = FakeBridge()
    fake.routes["/simplefin/accounts"] = httpx.Response(200, json=sample_account_set_json())

    def create_transport(timeout: float) -> HttpxTransport:
        return HttpxTransport(httpx.AsyncClient(transport=httpx.MockTransport(fake)))

    monkeypatch.setattr(commands, "create_transport", create_transport)
    return fake


class TestParseDateOption:
    """Test --start-date/--end-date parsing."""

    def test_blank(self) -> None:
        assert commands.parse_date_option(None) is None
        assert commands.parse_date_option("  ") is None

    def test_epoch_seconds(self) -> None:
        assert commands.parse_date_option("1609459200") == datetime(2021, 1, 1, tzinfo=timezone.utc)

    def test_iso_with_z(self) -> None:
        assert commands.parse_date_option("2024-01-31T00:00:00Z") == datetime(
            2024, 1, 31, tzinfo=timezone.utc
        )

    def test_iso_with_offset(self) -> None:
        assert commands.parse_date_option("2024-01-31T02:00:00+02:00") == datetime(
            2024, 1, 31, tzinfo=timezone.utc
        )

    def test_naive_date_is_utc(self) -> None:
        assert commands.parse_date_option("2024-01-31") == datetime(2024, 1, 31, tzinfo=timezone.utc)

    def test_invalid(self) -> None:
        with pytest.raises(ValueError, match='Unable to parse date "yesterday"'):
            commands.parse_date_option("yesterday")


class TestClaim:
    """Test the claim command."""

    def test_success(self, bridge: FakeBridge, capsys) -> None:
        bridge.routes["/simplefin/claim/demo"] = httpx.Response(200, text=ACCESS_URL)

        assert commands.claim(encode_setup_token()) == ExitCode.SUCCESS

        out = capsys.readouterr().out
        assert f"SIMPLEFIN_ACCESS_URL={ACCESS_URL}" in out
        assert str(bridge.requests[0].url) == CLAIM_URL
        assert bridge.requests[0].method == "POST"

    def test_bad_token(self, bridge: FakeBridge, capsys) -> None:
        assert commands.claim("%%%") == ExitCode.SETUP_TOKEN_ERROR
        assert "Token is not valid Base64." in capsys.readouterr().err
        assert bridge.requests == []

    def test_blank_token(self, bridge: FakeBridge) -> None:
        assert commands.claim("   ") == ExitCode.USAGE_ERROR

    def test_already_claimed(self, bridge: FakeBridge, capsys) -> None:
        bridge.routes["/simplefin/claim/demo"] = httpx.Response(403, text="already claimed")
        assert commands.claim(encode_setup_token()) == ExitCode.API_ERROR
        assert "Failed to claim access URL." in capsys.readouterr().err


class TestInfo:
    """Test the info command."""

    def test_versions(self, bridge: FakeBridge, capsys) -> None:
        bridge.routes["/simplefin/info"] = httpx.Response(200, json={"versions": ["1.0", "2.0"]})
        assert commands.info() == ExitCode.SUCCESS
        assert capsys.readouterr().out.splitlines() == [
            "Bridge supports the following protocol versions:",
            "- 1.0",
            "- 2.0",
        ]

    def test_no_versions(self, bridge: FakeBridge, capsys) -> None:
        bridge.routes["/custom/info"] = httpx.Response(200, json={"versions": []})
        assert commands.info(bridge="https://bridge.example.com/custom") == ExitCode.SUCCESS
        assert "No protocol versions reported by the bridge." in capsys.readouterr().out

    def test_bridge_url_from_environment(self, bridge: FakeBridge, monkeypatch) -> None:
        monkeypatch.setenv("SIMPLEFIN_BRIDGE_URL", "https://env.example.com/custom")
        bridge.routes["/custom/info"] = httpx.Response(200, json={"versions": []})
        assert commands.info() == ExitCode.SUCCESS
        assert bridge.requests[0].url.host == "env.example.com"

    def test_server_error(self, bridge: FakeBridge, capsys) -> None:
        bridge.routes["/simplefin/info"] = httpx.Response(500, text="boom")
        assert commands.info() == ExitCode.API_ERROR
        err = capsys.readouterr().err
        assert "Failed to query bridge info." in err
        assert "status_code: 500" in err


class TestAccounts:
    """Test the accounts command."""

    def test_missing_access_url(self, bridge: FakeBridge, capsys) -> None:
        assert commands.accounts() == ExitCode.USAGE_ERROR
        assert "No access URL provided." in capsys.readouterr().err
        assert bridge.requests == []

    def test_text(self, bridge: FakeBridge, capsys) -> None:
        assert commands.accounts(url=ACCESS_URL) == ExitCode.SUCCESS

        out = capsys.readouterr().out
        assert out.startswith("# Server Messages\n")
        assert "# Account: Checking" in out
        assert "# Account: Visa" in out
        assert bridge.query() == {"balances-only": ["1"]}
        assert bridge.requests[0].headers["Authorization"].startswith("Basic ")

    def test_access_url_from_dotenv(self, bridge: FakeBridge, tmp_path, capsys) -> None:
        (tmp_path / ".env").write_text(f"SIMPLEFIN_ACCESS_URL={ACCESS_URL}\n")
        assert commands.accounts(output_format="json") == ExitCode.SUCCESS
        data = json.loads(capsys.readouterr().out)
        assert len(data["data"]) == 3

    def test_org_filter(self, bridge: FakeBridge, capsys) -> None:
        assert commands.accounts(url=ACCESS_URL, org_id="org_1", output_format="csv") == ExitCode.SUCCESS
        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 3
        assert lines[1].startswith("acc_checking,")
        assert lines[2].startswith("acc_savings,")

    def test_org_filter_no_match(self, bridge: FakeBridge, capsys) -> None:
        assert commands.accounts(url=ACCESS_URL, org_id="org_9") == ExitCode.SUCCESS
        assert capsys.readouterr().out.strip() == 'No accounts found for organization "org_9".'

    def test_no_accounts(self, bridge: FakeBridge, capsys) -> None:
        bridge.routes["/simplefin/accounts"] = httpx.Response(200, json={"errors": [], "accounts": []})
        assert commands.accounts(url=ACCESS_URL) == ExitCode.SUCCESS
        assert capsys.readouterr().out.strip() == "No accounts returned by the bridge."

    def test_unknown_format(self, bridge: FakeBridge) -> None:
        assert commands.accounts(url=ACCESS_URL, output_format="xml") == ExitCode.USAGE_ERROR
        assert bridge.requests == []

    def test_malformed_access_url(self, bridge: FakeBridge, capsys) -> None:
        assert commands.accounts(url="https://bridge.example.com/simplefin") == ExitCode.DATA_FORMAT_ERROR
        assert "Basic Auth credentials" in capsys.readouterr().err

    def test_malformed_response(self, bridge: FakeBridge) -> None:
        bridge.routes["/simplefin/accounts"] = httpx.Response(200, json={"errors": [], "accounts": [{}]})
        assert commands.accounts(url=ACCESS_URL) == ExitCode.DATA_FORMAT_ERROR

    def test_forbidden(self, bridge: FakeBridge, capsys) -> None:
        bridge.routes["/simplefin/accounts"] = httpx.Response(403, text="Forbidden")
        assert commands.accounts(url=ACCESS_URL) == ExitCode.API_ERROR
        assert "s3cret" not in capsys.readouterr().err

    def test_format_from_config_file(self, bridge: FakeBridge, tmp_path, capsys) -> None:
        config_file = tmp_path / "simplefin.yaml"
        config_file.write_text(f"access_url: {ACCESS_URL}\noutput_format: csv\nuser_agent: budget/3.0\n")
        assert commands.accounts(config=config_file) == ExitCode.SUCCESS
        assert capsys.readouterr().out.startswith("account_id,account_name,")
        assert bridge.requests[0].headers["User-Agent"] == "budget/3.0"

    def test_missing_config_file(self, bridge: FakeBridge, tmp_path) -> None:
        assert commands.accounts(url=ACCESS_URL, config=tmp_path / "missing.json") == ExitCode.CONFIG_ERROR

    def test_unknown_log_level(self, bridge: FakeBridge) -> None:
        assert commands.accounts(url=ACCESS_URL, log_level="chatty") == ExitCode.USAGE_ERROR


class TestOrganizations:
    """Test the organizations command."""

    def test_text_sorted(self, bridge: FakeBridge, capsys) -> None:
        assert commands.organizations(url=ACCESS_URL) == ExitCode.SUCCESS
        headings = [line for line in capsys.readouterr().out.splitlines() if line.startswith("# Org")]
        assert headings == ["# Organization: Example Bank", "# Organization: creditunion.org"]

    def test_json_list(self, bridge: FakeBridge, capsys) -> None:
        assert commands.organizations(url=ACCESS_URL, output_format="json") == ExitCode.SUCCESS
        data = json.loads(capsys.readouterr().out)
        assert [org["sfin-url"] for org in data["data"]] == [
            "https://sfin.examplebank.com/simplefin",
            "https://sfin.creditunion.org/simplefin",
        ]

    def test_single_organization_json_object(self, bridge: FakeBridge, capsys) -> None:
        payload = sample_account_set_json()
        payload["errors"] = []
        payload["accounts"] = payload["accounts"][:2]
        bridge.routes["/simplefin/accounts"] = httpx.Response(200, json=payload)
        assert commands.organizations(url=ACCESS_URL, output_format="json") == ExitCode.SUCCESS
        assert json.loads(capsys.readouterr().out)["id"] == "org_1"

    def test_none(self, bridge: FakeBridge, capsys) -> None:
        bridge.routes["/simplefin/accounts"] = httpx.Response(200, json={"errors": [], "accounts": []})
        assert commands.organizations(url=ACCESS_URL) == ExitCode.SUCCESS
        assert capsys.readouterr().out.strip() == "No organizations returned by the bridge."


class TestTransactions:
    """Test the transactions command."""

    def test_query(self, bridge: FakeBridge) -> None:
        exit_code = commands.transactions(
            url=ACCESS_URL,
            account="acc_checking",
            start_date="2023-11-01T00:00:00Z",
            end_date="1700000000",
            pending=True,
        )
        assert exit_code == ExitCode.SUCCESS
        assert bridge.query() == {
            "start-date": ["1698796800"],
            "end-date": ["1700000000"],
            "pending": ["1"],
            "account": ["acc_checking"],
        }

    def test_default_window(self, bridge: FakeBridge) -> None:
        before = datetime.now(timezone.utc) - timedelta(days=30)
        assert commands.transactions(url=ACCESS_URL) == ExitCode.SUCCESS
        start = int(bridge.query()["start-date"][0])
        assert abs(start - int(before.timestamp())) <= 5
        assert "balances-only" not in bridge.query()

    def test_json(self, bridge: FakeBridge, capsys) -> None:
        assert commands.transactions(url=ACCESS_URL, output_format="json") == ExitCode.SUCCESS
        data = json.loads(capsys.readouterr().out)
        assert [tx["transaction-id"] for tx in data["data"]] == ["tx_1", "tx_2"]
        assert data["data"][0]["amount"] == "-50.00"

    def test_invalid_date(self, bridge: FakeBridge, capsys) -> None:
        assert commands.transactions(url=ACCESS_URL, start_date="next week") == ExitCode.USAGE_ERROR
        assert "Unable to parse date" in capsys.readouterr().err
        assert bridge.requests == []

    def test_inverted_range(self, bridge: FakeBridge, capsys) -> None:
        exit_code = commands.transactions(url=ACCESS_URL, start_date="1700000000", end_date="1600000000")
        assert exit_code == ExitCode.USAGE_ERROR
        assert "start_date must be before or equal to end_date." in capsys.readouterr().err
        assert bridge.requests == []

    @pytest.mark.parametrize(
        ("output_format", "expected"),
        [("text", "No transactions returned."), ("json", "[]")],
    )
    def test_no_transactions(self, bridge: FakeBridge, capsys, output_format: str, expected: str) -> None:
        payload = sample_account_set_json()
        payload["accounts"] = payload["accounts"][1:]
        bridge.routes["/simplefin/accounts"] = httpx.Response(200, json=payload)
        assert commands.transactions(url=ACCESS_URL, output_format=output_format) == ExitCode.SUCCESS
        assert capsys.readouterr().out.strip() == expected

    def test_no_transactions_csv_header_only(self, bridge: FakeBridge, capsys) -> None:
        bridge.routes["/simplefin/accounts"] = httpx.Response(200, json={"errors": ["m"], "accounts": []})
        assert commands.transactions(url=ACCESS_URL, output_format="csv") == ExitCode.SUCCESS
        assert capsys.readouterr().out.strip() == (
            "account_id,transaction_id,posted,amount,description,pending,transacted_at,server_messages"
        )

    def test_unknown_account(self, bridge: FakeBridge, capsys) -> None:
        bridge.routes["/simplefin/accounts"] = httpx.Response(200, json={"errors": [], "accounts": []})
        assert commands.transactions(url=ACCESS_URL, account="acc_x") == ExitCode.SUCCESS
        assert capsys.readouterr().out.strip() == 'No account returned for ID "acc_x".'


class TestCheckConfig:
    """Test the check-config command."""

    def test_valid(self, tmp_path, capsys) -> None:
        config_file = tmp_path / "simplefin.yaml"
        config_file.write_text(f"access_url: {ACCESS_URL}\noutput_format: json\ntimeout: 10\n")
        assert commands.check_config(config_file) == ExitCode.SUCCESS
        out = capsys.readouterr().out
        assert "✓ Configuration is valid" in out
        assert "s3cret" not in out

    def test_show_redacts_access_url(self, tmp_path, capsys) -> None:
        config_file = tmp_path / "simplefin.json"
        config_file.write_text(json.dumps({"access_url": ACCESS_URL}))
        assert commands.check_config(config_file, show=True) == ExitCode.SUCCESS
        assert "s3cret" not in capsys.readouterr().out

    def test_invalid(self, tmp_path, capsys) -> None:
        config_file = tmp_path / "simplefin.json"
        config_file.write_text(json.dumps({"output_format": "xml", "timeout": 0}))
        assert commands.check_config(config_file) == ExitCode.CONFIG_ERROR
        err = capsys.readouterr().err
        assert "Unknown output format: xml" in err
        assert "timeout must be a positive number" in err

    def test_missing(self, tmp_path, capsys) -> None:
        assert commands.check_config(tmp_path / "missing.yaml") == ExitCode.CONFIG_ERROR
        assert "Configuration file not found" in capsys.readouterr().err
