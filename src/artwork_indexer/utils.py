"""Utility functions for address validation and media naming"""

import hashlib
import re
from pathlib import PurePosixPath
from typing import Any, Optional, Tuple
from urllib.parse import unquote, urlparse

import base58
from eth_utils import is_address
from loguru import logger

from .models import Blockchain

TEZOS_PREFIXES = ("tz1", "tz2", "tz3", "tz4", "KT1")


def validate_ethereum_address(address: str) -> Tuple[bool, Optional[str]]:
    """
    Validate an EVM address

    Returns:
        (is_valid, lower-cased address or None)
    """
    if not address or not isinstance(address, str):
        return False, None

    address = address.strip()
    if not re.match(r"^0x[a-fA-F0-9]{40}$", address):
        return False, None
    # Mixed-case input must carry a valid EIP-55 checksum
    if not is_address(address):
        return False, None
    return True, address.lower()


def validate_tezos_address(address: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a Tezos implicit (tz1/tz2/tz3/tz4) or originated (KT1) address

    Returns:
        (is_valid, address or None)
    """
    if not address or not isinstance(address, str):
        return False, None

    address = address.strip()
    if len(address) != 36 or not address.startswith(TEZOS_PREFIXES):
        return False, None

    try:
        payload = base58.b58decode_check(address)
    except ValueError as e:
        logger.debug(f"Tezos address checksum error for {address}: {e}")
        return False, None
    # 3-byte prefix + 20-byte hash
    if len(payload) != 23:
        return False, None
    return True, address


def validate_address(address: str, blockchain: Blockchain) -> Tuple[bool, Optional[str]]:
    """Validate a wallet/contract address for the given chain"""
    if blockchain == Blockchain.TEZOS:
        return validate_tezos_address(address)
    return validate_ethereum_address(address)


def normalize_contract(address: Optional[str], blockchain: Blockchain) -> Optional[str]:
    """EVM addresses compare case-insensitively; Tezos addresses do not"""
    if not address or not isinstance(address, str):
        return None
    address = address.strip()
    return address.lower() if blockchain.is_evm else address


def sha256_hex(data: Any) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def url_basename(url: str) -> Optional[str]:
    """Last path segment without query string or extension"""
    if not url or url.startswith("data:"):
        return None
    path = unquote(urlparse(url).path)
    stem = PurePosixPath(path).stem
    return stem or None


def coerce_positive_int(value: Any) -> Optional[int]:
    """int(value) when it is a positive whole number"""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None
    return number if number > 0 else None
