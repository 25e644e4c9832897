"""Zora coin factory client on Base."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from eth_account import Account
from web3 import AsyncWeb3
from web3.logs import DISCARD
from web3.providers.rpc import AsyncHTTPProvider

from .config import ZoraConfig
from .pinata_client import MetadataFetchError, PinataClient

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
ZERO_TX_HASH = "0x" + "0" * 64

FACTORY_ABI = [
    {
        "type": "function",
        "name": "deploy",
        "stateMutability": "payable",
        "inputs": [
            {"name": "payoutRecipient", "type": "address"},
            {"name": "owners", "type": "address[]"},
            {"name": "uri", "type": "string"},
            {"name": "name", "type": "string"},
            {"name": "symbol", "type": "string"},
            {"name": "poolConfig", "type": "bytes"},
            {"name": "platformReferrer", "type": "address"},
            {"name": "orderSize", "type": "uint256"},
        ],
        "outputs": [
            {"name": "coin", "type": "address"},
            {"name": "coinsPurchased", "type": "uint256"},
        ],
    },
    {
        "type": "event",
        "name": "CoinCreated",
        "anonymous": False,
        "inputs": [
            {"name": "caller", "type": "address", "indexed": True},
            {"name": "payoutRecipient", "type": "address", "indexed": True},
            {"name": "platformReferrer", "type": "address", "indexed": True},
            {"name": "currency", "type": "address", "indexed": False},
            {"name": "uri", "type": "string", "indexed": False},
            {"name": "name", "type": "string", "indexed": False},
            {"name": "symbol", "type": "string", "indexed": False},
            {"name": "coin", "type": "address", "indexed": False},
            {"name": "pool", "type": "address", "indexed": False},
            {"name": "version", "type": "string", "indexed": False},
        ],
    },
]


class IssuanceError(Exception):
    """Base class for token issuance failures."""


class TransientMetadataError(IssuanceError):
    """Metadata fetch failed, most likely because IPFS has not propagated yet."""


class PermanentIssuanceError(IssuanceError):
    """Issuance failed for a reason retrying will not fix."""


@dataclass(frozen=True)
class CoinParams:
    """Inputs to a coin deployment."""

    name: str
    symbol: str
    uri: str
    payout_recipient: str
    platform_referrer: str
    initial_purchase_wei: int = 0


@dataclass(frozen=True)
class CoinResult:
    tx_hash: str
    address: str


def short_address(address: Optional[str]) -> str:
    """Truncate an address for logging."""
    if not address:
        return "-"
    return f"{address[:6]}...{address[-4:]}"


class ZoraClient:
    """Deploys coins through the Zora factory contract."""

    def __init__(self, config: ZoraConfig, storage: PinataClient) -> None:
        self.config = config
        self.storage = storage
        self._w3: AsyncWeb3 | None = None
        self._account = None
        self._nonce_lock = asyncio.Lock()

    @property
    def w3(self) -> AsyncWeb3:
        if self._w3 is None:
            self._w3 = AsyncWeb3(AsyncHTTPProvider(self.config.rpc_url))
        return self._w3

    @property
    def account(self):
        if self._account is None:
            self._account = Account.from_key(self.config.private_key.get_secret_value())
        return self._account

    def generate_zora_url(self, address: str, referrer: Optional[str] = None) -> str:
        """Viewer URL for a deployed coin."""
        url = f"{self.config.viewer_base_url}{address}"
        return f"{url}?referrer={referrer}" if referrer else url

    async def _check_metadata(self, uri: str) -> None:
        try:
            await self.storage.fetch(uri)
        except MetadataFetchError as e:
            raise TransientMetadataError(f"Metadata fetch failed: {e}") from e

    async def create_coin(self, params: CoinParams) -> CoinResult:
        """Deploy a coin and wait for its receipt.

        The metadata URI is read back first; the factory indexers reject coins
        whose metadata cannot be fetched.

        Raises:
            TransientMetadataError: If the metadata URI is not readable yet.
            PermanentIssuanceError: For every other failure.
        """
        logger.info(
            "Creating coin %s (%s) payout=%s referrer=%s",
            params.name,
            params.symbol,
            short_address(params.payout_recipient),
            short_address(params.platform_referrer),
        )

        await self._check_metadata(params.uri)

        try:
            return await self._deploy(params)
        except IssuanceError:
            raise
        except Exception as e:
            raise PermanentIssuanceError(f"Coin deployment failed: {e}") from e

    async def _deploy(self, params: CoinParams) -> CoinResult:
        w3 = self.w3
        sender = self.account.address
        payout = AsyncWeb3.to_checksum_address(params.payout_recipient)
        contract = w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(self.config.factory_address), abi=FACTORY_ABI
        )

        function_call = contract.functions.deploy(
            payout,
            [payout],
            params.uri,
            params.name,
            params.symbol,
            bytes.fromhex(self.config.pool_config.removeprefix("0x")),
            AsyncWeb3.to_checksum_address(params.platform_referrer),
            params.initial_purchase_wei,
        )

        gas_estimate = await function_call.estimate_gas(
            {"from": sender, "value": params.initial_purchase_wei}
        )

        async with self._nonce_lock:
            nonce = await w3.eth.get_transaction_count(sender, "pending")
            tx = await function_call.build_transaction(
                {
                    "from": sender,
                    "value": params.initial_purchase_wei,
                    "gas": int(gas_estimate * self.config.gas_multiplier),
                    "nonce": nonce,
                    "chainId": self.config.chain_id,
                }
            )
            signed_tx = self.account.sign_transaction(tx)
            tx_hash = await w3.eth.send_raw_transaction(signed_tx.raw_transaction)

        tx_hash_hex = w3.to_hex(tx_hash)
        logger.info("Deployment transaction sent: %s", tx_hash_hex)

        receipt = await w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self.config.receipt_timeout
        )
        if receipt["status"] != 1:
            raise PermanentIssuanceError(f"Deployment transaction {tx_hash_hex} reverted")

        events = contract.events.CoinCreated().process_receipt(receipt, errors=DISCARD)
        if not events:
            raise PermanentIssuanceError(f"No CoinCreated event in {tx_hash_hex}")

        address = events[0]["args"]["coin"]
        logger.info("Coin deployed at %s (tx %s)", address, tx_hash_hex)
        return CoinResult(tx_hash=tx_hash_hex, address=address)
