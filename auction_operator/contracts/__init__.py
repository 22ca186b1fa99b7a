"""
Contract ABIs for the pool manager, the auction hook and the operator registry.
"""

import json
import os
from functools import lru_cache
from typing import Any, Dict, List

from ..core.errors import ValidationError

POOL_MANAGER_ABI = "pool_manager"
AUCTION_HOOK_ABI = "auction_hook"
OPERATOR_REGISTRY_ABI = "operator_registry"


@lru_cache(maxsize=None)
def _read_abi(name: str) -> str:
    abi_path = os.path.join(os.path.dirname(__file__), "abi", f"{name}.json")
    with open(abi_path, "r") as f:
        return f.read()


def load_abi(name: str) -> List[Dict[str, Any]]:
    """
    Load a contract ABI shipped with the package.

    Args:
        name: ABI file stem (``pool_manager``, ``auction_hook``, ``operator_registry``)

    Raises:
        ValidationError: If the ABI file is missing or invalid
    """
    try:
        return json.loads(_read_abi(name))
    except (FileNotFoundError, json.JSONDecodeError) as e:
        raise ValidationError(f"Failed to load {name} ABI: {e}")
