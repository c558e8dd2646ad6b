"""Tests for the command line."""

import json
from unittest.mock import patch

import pytest

from mcprobe.cli import (
    main,
    resolve_password,
    resolve_server,
    resolve_token,
    to_jsonable,
)
from mcprobe.config import AppConfig, CredentialConfig, ServerConfig, VoteConfig
from mcprobe.credentials import RCON_PASSWORD, VOTIFIER_TOKEN, CredentialError
from mcprobe.errors import DeadlineExceededError
from mcprobe.formatting import Motd
from mcprobe.java import JavaStatus, Players, SamplePlayer, Version
from mcprobe.query import FullQueryResponse

RCON_CREDS = CredentialConfig(vault="Homelab", item="minecraft", field="RCON_PASSWORD")
VOTE_CREDS = CredentialConfig(vault="Homelab", item="votifier", field="TOKEN")

JAVA_STATUS = JavaStatus(
    version=Version(name="1.20.4", protocol=765),
    players=Players(online=1, max=20, sample=(SamplePlayer(name="Notch", id="x"),)),
    motd=Motd.parse("§aA Minecraft Server"),
    latency=3.25,
)


def _make_config(**overrides) -> AppConfig:
    """Build an AppConfig with sensible defaults."""
    defaults = {
        "default_server": "mc-1",
        "default_credentials": RCON_CREDS,
        "servers": {
            "mc-1": ServerConfig(name="MC-1", host="10.0.0.112"),
            "mc-2": ServerConfig(name="MC-2", host="10.0.0.113", query_port=25600),
        },
        "vote": VoteConfig(service_name="TopSites", credentials=VOTE_CREDS),
    }
    defaults.update(overrides)
    return AppConfig(**defaults)


class TestResolveServer:
    def test_resolve_by_config_name(self):
        name, server, port = resolve_server("mc-1", _make_config())

        assert name == "mc-1"
        assert server.host == "10.0.0.112"
        assert port is None

    def test_resolve_host_port(self):
        _, server, port = resolve_server("192.168.1.1:25575", _make_config())

        assert server.host == "192.168.1.1"
        assert port == 25575

    def test_resolve_bracketed_ipv6(self):
        _, server, port = resolve_server("[::1]:19132", _make_config())

        assert server.host == "::1"
        assert port == 19132

    def test_resolve_bare_hostname(self):
        _, server, port = resolve_server("myserver.local", _make_config())

        assert server.host == "myserver.local"
        assert port is None

    def test_resolve_default_server(self):
        name, server, _ = resolve_server(None, _make_config())

        assert name == "mc-1"
        assert server.host == "10.0.0.112"

    def test_invalid_port(self):
        with pytest.raises(ValueError, match="Invalid port"):
            resolve_server("myhost:notaport", _make_config())

    def test_no_default_no_servers(self):
        config = _make_config(default_server=None, servers={})

        with pytest.raises(SystemExit):
            resolve_server(None, config)

    @patch("builtins.input", return_value="2")
    def test_interactive_selection(self, _mock_input):
        name, server, _ = resolve_server(None, _make_config(default_server=None))

        assert name == "mc-2"
        assert server.host == "10.0.0.113"


class TestResolveSecrets:
    def test_password_flag_wins(self):
        config = _make_config()
        assert resolve_password("flag", config.servers["mc-1"], config) == "flag"

    @patch("mcprobe.credentials.get_secret", return_value="from-1password")
    def test_password_from_default_credentials(self, mock_get_secret):
        config = _make_config()

        assert resolve_password(None, config.servers["mc-1"], config) == (
            "from-1password"
        )
        mock_get_secret.assert_called_once_with(RCON_CREDS, RCON_PASSWORD)

    def test_password_without_credentials(self):
        config = _make_config(default_credentials=None)

        with pytest.raises(CredentialError, match="-p"):
            resolve_password(None, config.servers["mc-1"], config)

    @patch("mcprobe.credentials.get_secret", return_value="token")
    def test_token_prefers_server_credentials(self, mock_get_secret):
        own = CredentialConfig(vault="V", item="own", field="TOKEN")
        server = ServerConfig(name="s", host="h", vote_credentials=own)

        resolve_token(None, server, _make_config())

        mock_get_secret.assert_called_once_with(own, VOTIFIER_TOKEN)

    def test_token_without_credentials(self):
        config = _make_config(vote=VoteConfig())

        with pytest.raises(CredentialError, match="--token"):
            resolve_token(None, config.servers["mc-1"], config)


class TestToJsonable:
    def test_java_status(self):
        data = to_jsonable(JAVA_STATUS)

        assert data["motd"] == "A Minecraft Server"
        assert data["players"]["sample"] == [{"name": "Notch", "id": "x"}]
        assert data["favicon"] is None
        json.dumps(data)


@patch("mcprobe.cli.load_config", return_value=_make_config())
class TestMain:
    @patch("mcprobe.cli.status", return_value=JAVA_STATUS)
    def test_status(self, mock_status, _mock_config, capsys):
        main(["status", "mc-1", "--no-color"])

        mock_status.assert_called_once_with(
            "10.0.0.112", 25565, timeout=5.0, enable_srv=True
        )
        out = capsys.readouterr().out
        assert "Players:  1/20" in out
        assert "MOTD:     A Minecraft Server" in out
        assert "\033[" not in out

    @patch("mcprobe.cli.status", return_value=JAVA_STATUS)
    def test_status_json(self, _mock_status, _mock_config, capsys):
        main(["status", "mc-1", "--json", "--no-srv", "--timeout", "1"])

        data = json.loads(capsys.readouterr().out)
        assert data["players"]["online"] == 1

    @patch("mcprobe.cli.status", return_value=JAVA_STATUS)
    def test_no_srv_and_timeout(self, mock_status, _mock_config):
        main(["status", "mc.example.com:25570", "--no-srv", "--timeout", "1.5"])

        mock_status.assert_called_once_with(
            "mc.example.com", 25570, timeout=1.5, enable_srv=False
        )

    @patch("mcprobe.cli.status", side_effect=DeadlineExceededError("Timed out"))
    def test_error_exits(self, _mock_status, _mock_config, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["status", "mc-1"])

        assert exc_info.value.code == 1
        assert "Error: Timed out" in capsys.readouterr().err

    @patch("mcprobe.cli.full_query")
    def test_query_uses_query_port(self, mock_full_query, _mock_config, capsys):
        mock_full_query.return_value = FullQueryResponse(
            data={"hostname": "Hi", "version": "1.20.4"}, players=["Notch"]
        )

        main(["query", "mc-2", "--full", "--no-color"])

        mock_full_query.assert_called_once_with("10.0.0.113", 25600, timeout=5.0)
        out = capsys.readouterr().out
        assert "version: 1.20.4" in out
        assert "  - Notch" in out

    @patch("mcprobe.cli.send_vote")
    @patch("mcprobe.credentials.get_secret", return_value="token")
    def test_vote(self, _mock_secret, mock_send_vote, _mock_config, capsys):
        main(["vote", "mc-1", "--username", "jeb_"])

        mock_send_vote.assert_called_once_with(
            "10.0.0.112",
            8192,
            service_name="TopSites",
            username="jeb_",
            token="token",
            uuid=None,
            timeout=5.0,
        )
        assert "Vote for jeb_ accepted" in capsys.readouterr().out

    @patch("mcprobe.cli.RconSession")
    def test_rcon_single_command(self, mock_session_cls, _mock_config, capsys):
        session = mock_session_cls.return_value.__enter__.return_value
        session.recv.return_value = "§aThere are 0 of a max of 20 players online"

        main(["rcon", "mc-1", "-p", "secret", "-c", "list", "--no-color"])

        session.dial.assert_called_once_with("10.0.0.112", 25575, timeout=5.0)
        session.login.assert_called_once_with("secret")
        session.run.assert_called_once_with("list")
        out = capsys.readouterr().out
        assert out == "There are 0 of a max of 20 players online\n"

    @patch("mcprobe.cli.run_console")
    @patch("mcprobe.cli.RconSession")
    def test_rcon_interactive(self, mock_session_cls, mock_console, _mock_config):
        session = mock_session_cls.return_value.__enter__.return_value

        main(["rcon", "mc-1", "-p", "secret"])

        mock_console.assert_called_once_with(session, color=True)
