"""
Management heuristics: when to withdraw fees and how often to retune.
"""

import math

WITHDRAWAL_GAS = 100_000


def is_withdrawal_profitable(accumulated_fees: int, gas_price: int, min_profit_multiplier: int = 2) -> bool:
    """Withdraw only when fees cover the ~100k gas withdrawal several times over."""
    gas_cost = gas_price * WITHDRAWAL_GAS
    return accumulated_fees >= gas_cost * min_profit_multiplier


def calculate_fee_update_frequency(
    volatility: float,
    volume_change: float,
    min_blocks: int = 10,
    max_blocks: int = 100,
) -> int:
    """
    Blocks to wait between fee updates.

    Volatile markets and large volume swings shorten the interval.
    """
    volatility_factor = max(0.0, 1 - volatility)
    volume_change_factor = max(0.0, 1 - abs(volume_change) / 100)

    combined_factor = (volatility_factor + volume_change_factor) / 2
    blocks = math.floor(min_blocks + (max_blocks - min_blocks) * combined_factor)

    return max(min_blocks, min(max_blocks, blocks))
