"""
Transaction execution for the auction operator.

Usage:
    from auction_operator.execution import TransactionExecutor

    executor = TransactionExecutor(web3, account, hook_address, pool_manager_address)
    result = await executor.set_swap_fee(pool_key, 3500)
"""

from .executor import FALLBACK_GAS_PRICE, TransactionExecutor, apply_multiplier
from .heuristics import WITHDRAWAL_GAS, calculate_fee_update_frequency, is_withdrawal_profitable
from .pending import PendingKey, PendingTransaction, PendingTransactionTracker

__all__ = [
    'TransactionExecutor',
    'apply_multiplier',
    'FALLBACK_GAS_PRICE',
    'PendingKey',
    'PendingTransaction',
    'PendingTransactionTracker',
    'WITHDRAWAL_GAS',
    'is_withdrawal_profitable',
    'calculate_fee_update_frequency',
]
