"""
Wallet Address Validation

Structural checks on destination addresses, one rule per Asset member.
These catch typos and wrong-network addresses; they do not verify checksums.
"""
import re

from ..exceptions import InvalidWalletAddressError, UnsupportedAssetError
from ..models.assets import Asset

# 0x-prefixed, 20-byte hex (Ethereum and ERC-20 / BEP-20 tokens)
EVM_ADDRESS = re.compile(r"^0x[a-fA-F0-9]{40}$")
# Legacy P2PKH/P2SH base58 or bech32 segwit
BTC_ADDRESS = re.compile(r"^[13][a-km-zA-HJ-NP-Z1-9]{25,34}$|^bc1[a-z0-9]{39,59}$")
# Base58 ed25519 public key
SOL_ADDRESS = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")
# Beacon chain bech32
BNB_BEACON_ADDRESS = re.compile(r"^bnb1[a-z0-9]{38}$")


def is_valid_wallet_address(asset: Asset, address: str) -> bool:
    """Return True if `address` has the right shape for `asset`."""
    if asset is Asset.BTC:
        return bool(BTC_ADDRESS.fullmatch(address))
    elif asset in (Asset.ETH, Asset.USDT, Asset.USDC):
        return bool(EVM_ADDRESS.fullmatch(address))
    elif asset is Asset.SOL:
        return bool(SOL_ADDRESS.fullmatch(address))
    elif asset is Asset.BNB:
        return bool(EVM_ADDRESS.fullmatch(address) or BNB_BEACON_ADDRESS.fullmatch(address))
    raise ValueError(f"No address rule for {asset}")


def validate_wallet_address(symbol: str, address: str) -> Asset:
    """
    Check `address` against the rule for `symbol`.

    Returns:
        The parsed Asset

    Raises:
        UnsupportedAssetError: unknown symbol
        InvalidWalletAddressError: address does not match
    """
    asset = Asset.parse(symbol)
    if asset is None:
        raise UnsupportedAssetError(f"Cryptocurrency {symbol} is not supported", details={"symbol": symbol})

    if not is_valid_wallet_address(asset, address):
        raise InvalidWalletAddressError(
            f"Invalid wallet address for {asset.value}",
            details={"symbol": asset.value}
        )
    return asset
