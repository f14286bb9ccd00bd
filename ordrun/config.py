import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path.cwd() / ".env")

_NETWORK_URLS: dict[str, str] = {
    "mainnet": os.getenv("MEMPOOL_API_URL", "https://mempool.space/api"),
    "testnet": os.getenv("MEMPOOL_TESTNET_URL", "https://mempool.space/testnet/api"),
    "signet":  os.getenv("MEMPOOL_SIGNET_URL",  "https://mempool.space/signet/api"),
    # local electrs (Esplora HTTP API)
    "regtest": os.getenv("MEMPOOL_REGTEST_URL", "http://localhost:3002"),
}


@dataclass
class Config:
    # Chain indexer (mempool.space / Esplora)
    mempool_base_url: str = field(
        default_factory=lambda: os.getenv("MEMPOOL_API_URL", "https://mempool.space/api")
    )
    http_timeout: int = field(
        default_factory=lambda: int(os.getenv("ORDRUN_HTTP_TIMEOUT", "30"))
    )

    # Bitcoin network
    network: str = field(
        default_factory=lambda: os.getenv("BITCOIN_NETWORK", "testnet")
    )

    # Inscription defaults
    fee_rate: int = field(
        default_factory=lambda: int(os.getenv("ORDRUN_FEE_RATE", "5"))
    )
    poll_interval: float = field(
        default_factory=lambda: float(os.getenv("ORDRUN_POLL_INTERVAL", "60"))
    )

    def mempool_url_for(self, network: str | None = None) -> str:
        """Return the indexer base URL for the given (or current) network."""
        net = network or self.network
        return _NETWORK_URLS.get(net, self.mempool_base_url)


config = Config()
