"""Tests for the modwarden CLI — GitHub is faked through httpx.MockTransport."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from modwarden import cli
from modwarden.config import load_config
from modwarden.engines.audit.github_client import GitHubClient
from modwarden.engines.audit.report import RecordingSink
from modwarden.exceptions import BlacklistError, ConfigError

BANNED = "github.com/banned/pkg"


def _invoke(args, fake=None, env=None):
    runner = CliRunner()
    env = {"GITHUB_TOKEN": "", **(env or {})}
    if fake is None:
        return runner.invoke(cli.main, args, env=env)
    with patch.object(cli, "GitHubClient", side_effect=lambda token: fake.client()):
        return runner.invoke(cli.main, args, env=env)


# ── config ──


class TestLoadConfig:
    def test_token_flag_wins(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "env")
        cfg = load_config(org="acme", modules=["a/b"], token="flag")
        assert cfg.token == "flag"

    def test_token_env_fallback(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "env")
        assert load_config(org="acme", modules=["a/b"], token=None).token == "env"

    def test_missing_token(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with pytest.raises(ConfigError, match="github-token"):
            load_config(org="acme", modules=["a/b"], token=None)

    def test_missing_org(self):
        with pytest.raises(ConfigError, match="--org"):
            load_config(org=None, modules=["a/b"], token="t")

    def test_missing_modules(self):
        with pytest.raises(ConfigError, match="--modules"):
            load_config(org="acme", modules=[], token="t")

    def test_bad_version(self):
        with pytest.raises(BlacklistError):
            load_config(org="acme", modules=["a/b@nope"], token="t")

    def test_workers_must_be_positive(self):
        with pytest.raises(ConfigError, match="--workers"):
            load_config(org="acme", modules=["a/b"], token="t", workers=0)

    def test_pipeline_config(self):
        cfg = load_config(org="acme", modules=["a/b"], token="t", recursive=False, workers=2)
        pc = cfg.pipeline_config()
        assert (pc.org, pc.recursive, pc.workers) == ("acme", False, 2)


# ── exit codes ──


class TestExitCodes:
    def test_no_arguments_prints_help(self):
        result = _invoke([])
        assert result.exit_code == 0
        assert "--org" in result.output

    def test_unexpected_arguments(self):
        result = _invoke(["--org", "acme", "--modules", "a/b", "--github-token", "t", "extra"])
        assert result.exit_code == cli.EXIT_CONFIG
        assert "unexpected arguments - extra" in result.output

    def test_missing_token(self):
        result = _invoke(["--org", "acme", "--modules", "a/b"])
        assert result.exit_code == cli.EXIT_CONFIG
        assert "--github-token required" in result.output

    def test_missing_org(self):
        result = _invoke(["--modules", "a/b", "--github-token", "t"])
        assert result.exit_code == cli.EXIT_CONFIG

    def test_bad_blacklist_version(self):
        result = _invoke(["--org", "acme", "--modules", "a/b@nope", "--github-token", "t"])
        assert result.exit_code == cli.EXIT_BAD_VERSION

    def test_semver_prerelease_minimum_accepted(self, fake_github):
        fake_github.add_repo("svc", {"go.mod": fake_github.go_mod(f"{BANNED} v1.0.0-beta.2")})
        result = _invoke(
            ["--org", "acme", "--modules", f"{BANNED}@1.0.0-beta.x", "--github-token", "t"],
            fake_github,
        )
        assert result.exit_code == cli.EXIT_VIOLATIONS
        assert f"mod imports {BANNED}@1.0.0-beta.2 (min version is 1.0.0-beta.x)" in result.output

    def test_unknown_log_level(self):
        result = _invoke(
            ["--org", "acme", "--modules", "a/b", "--github-token", "t"],
            env={"MODWARDEN_LOG_LEVEL": "loud"},
        )
        assert result.exit_code == cli.EXIT_CONFIG
        assert "unknown log level" in result.output

    def test_clean_org(self, fake_github):
        fake_github.add_repo("svc", {"go.mod": fake_github.go_mod(f"{BANNED} v2.5.0")})
        result = _invoke(
            ["--org", "acme", "--modules", f"{BANNED}@2.0.0", "--github-token", "t"], fake_github
        )
        assert result.exit_code == cli.EXIT_OK
        assert "PASS acme/svc go.mod" in result.output
        assert "banished imports" not in result.output

    def test_violations_found(self, fake_github):
        fake_github.add_repo("svc", {"go.mod": fake_github.go_mod(f"{BANNED} v1.0.0")})
        fake_github.add_repo("lib", {"go.mod": fake_github.go_mod(f"{BANNED} v3.0.0")})
        result = _invoke(
            ["--org", "acme", "--modules", f"{BANNED}@2.0.0", "--github-token", "t"], fake_github
        )
        assert result.exit_code == cli.EXIT_VIOLATIONS
        assert "FAIL acme/svc go.mod" in result.output
        assert f"  mod imports {BANNED}@1.0.0 (min version is 2.0.0)" in result.output
        assert "PASS acme/lib go.mod" in result.output
        assert "== 1 repos had 1 banished imports ==" in result.output

    def test_token_from_env(self, fake_github):
        fake_github.add_repo("svc", {"go.mod": fake_github.go_mod(f"{BANNED} v1.0.0")})
        result = _invoke(
            ["--org", "acme", "--modules", "other/mod", "--modules", BANNED],
            fake_github,
            env={"GITHUB_TOKEN": "from-env"},
        )
        assert result.exit_code == cli.EXIT_VIOLATIONS
        assert f"  MOD IMPORTS {BANNED}" in result.output

    def test_listing_exhausted(self, fake_github):
        fake_github.list_failures = 100
        with patch("asyncio.sleep", side_effect=_no_sleep):
            result = _invoke(
                [
                    "--org", "acme", "--modules", BANNED, "--github-token", "t",
                    "--max-page-attempts", "2",
                ],
                fake_github,
            )
        assert result.exit_code == cli.EXIT_CONFIG
        assert "failed 2 times" in result.output


async def _no_sleep(_delay):
    return None


class TestRunAudit:
    @pytest.mark.anyio
    async def test_uses_given_client_and_leaves_it_open(self, fake_github):
        fake_github.add_repo("svc", {"go.mod": fake_github.go_mod(f"{BANNED} v1.0.0")})
        cfg = load_config(org="acme", modules=[BANNED], token="t")
        client = fake_github.client()
        totals = await cli.run_audit(cfg, RecordingSink(), client)
        assert totals.failed_manifests == 1
        assert isinstance(client, GitHubClient)
        assert not client._client.is_closed
        await client.close()
