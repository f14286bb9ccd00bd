from __future__ import annotations

from ordrun.config import Config


class TestConfig:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("BITCOIN_NETWORK", "signet")
        monkeypatch.setenv("ORDRUN_FEE_RATE", "12")
        monkeypatch.setenv("ORDRUN_POLL_INTERVAL", "2.5")
        monkeypatch.setenv("ORDRUN_HTTP_TIMEOUT", "7")
        cfg = Config()
        assert cfg.network == "signet"
        assert cfg.fee_rate == 12
        assert cfg.poll_interval == 2.5
        assert cfg.http_timeout == 7

    def test_defaults(self, monkeypatch):
        for name in ("BITCOIN_NETWORK", "ORDRUN_FEE_RATE", "ORDRUN_POLL_INTERVAL"):
            monkeypatch.delenv(name, raising=False)
        cfg = Config()
        assert cfg.network == "testnet"
        assert cfg.fee_rate == 5
        assert cfg.poll_interval == 60.0

    def test_network_urls(self):
        cfg = Config()
        assert cfg.mempool_url_for("testnet") != cfg.mempool_url_for("mainnet")
        assert cfg.mempool_url_for("signet")

    def test_network_override(self):
        cfg = Config()
        cfg.network = "testnet"
        assert cfg.mempool_url_for() == cfg.mempool_url_for("testnet")

    def test_regtest_has_its_own_url(self):
        cfg = Config()
        assert cfg.mempool_url_for("regtest") not in (
            cfg.mempool_url_for("mainnet"),
            cfg.mempool_url_for("testnet"),
        )

    def test_unknown_network_falls_back(self):
        cfg = Config(mempool_base_url="http://localhost:8080/api")
        assert cfg.mempool_url_for("litecoin") == "http://localhost:8080/api"
