"""
Domain types shared by the monitor, engines and executor.

All values are immutable; wei amounts and other on-chain integers are plain
``int`` so no precision is lost.
"""

from dataclasses import dataclass, field
from typing import Tuple

from eth_abi import encode
from eth_typing import ChecksumAddress
from eth_utils import keccak, to_checksum_address
from hexbytes import HexBytes

from .errors import ValidationError
from .result import Nothing, Option, Result, Some

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Fee unit: 1_000_000 == 100%
FEE_DENOMINATOR = 1_000_000
WEI_PER_ETH = 10**18


def normalize_address(address: str) -> ChecksumAddress:
    """Checksum an address; raises ValueError for malformed input."""
    return to_checksum_address(address)


def optional_address(address: str) -> Option:
    """Map the zero address to ``Nothing`` and anything else to ``Some``."""
    if address is None or int(address, 16) == 0:
        return Nothing()
    return Some(normalize_address(address))


def same_address(option: Option, address: str) -> bool:
    """True when ``option`` holds ``address`` (case-insensitive)."""
    if isinstance(option, Some):
        return option.value.lower() == address.lower()
    return False


def normalize_pool_id(pool_id) -> str:
    """
    Normalize a pool identifier to a 0x-prefixed 32-byte lowercase hex string.

    Raises:
        ValueError: If the identifier is not 32 bytes of hex
    """
    if isinstance(pool_id, (bytes, bytearray, HexBytes)):
        if len(pool_id) != 32:
            raise ValueError(f"Invalid pool ID length: {len(pool_id)} bytes")
        return "0x" + bytes(pool_id).hex()

    if not isinstance(pool_id, str):
        raise ValueError(f"Pool ID must be hex string: {pool_id}")

    clean_id = pool_id[2:] if pool_id.lower().startswith("0x") else pool_id
    if len(clean_id) != 64:  # 32 bytes = 64 hex chars
        raise ValueError(f"Invalid pool ID length: {pool_id}")
    int(clean_id, 16)  # Test if valid hex
    return "0x" + clean_id.lower()


def pool_id_bytes(pool_id: str) -> bytes:
    """bytes32 form of a pool identifier for contract calls."""
    return bytes.fromhex(normalize_pool_id(pool_id)[2:])


@dataclass(frozen=True)
class PoolKey:
    """The five-field struct that identifies a v4 pool."""

    currency0: str
    currency1: str
    fee: int
    tick_spacing: int
    hooks: str

    @property
    def pool_id(self) -> str:
        """keccak256(abi.encode(PoolKey)), as computed by the pool manager."""
        encoded = encode(
            ["address", "address", "uint24", "int24", "address"],
            [
                normalize_address(self.currency0),
                normalize_address(self.currency1),
                self.fee,
                self.tick_spacing,
                normalize_address(self.hooks),
            ],
        )
        return "0x" + keccak(encoded).hex()

    def as_tuple(self) -> Tuple[str, str, int, int, str]:
        """Tuple form accepted by contract functions taking a PoolKey."""
        return (
            normalize_address(self.currency0),
            normalize_address(self.currency1),
            self.fee,
            self.tick_spacing,
            normalize_address(self.hooks),
        )

    @classmethod
    def parse(cls, entry: str, hooks: str) -> "PoolKey":
        """
        Parse ``currency0:currency1:fee:tickSpacing``.

        Raises:
            ValueError: If the entry is malformed
        """
        parts = [part.strip() for part in entry.split(":")]
        if len(parts) != 4:
            raise ValueError(f"Pool entry must be currency0:currency1:fee:tickSpacing, got: {entry}")
        currency0, currency1, fee, tick_spacing = parts
        return cls(
            currency0=normalize_address(currency0),
            currency1=normalize_address(currency1),
            fee=int(fee),
            tick_spacing=int(tick_spacing),
            hooks=normalize_address(hooks),
        )


@dataclass(frozen=True)
class Slot0:
    """Pool price slot: current sqrt price, tick and protocol fee."""

    sqrt_price_x96: int
    tick: int
    protocol_fee: int

    @classmethod
    def from_call(cls, values) -> "Slot0":
        """Decode the ``getSlot0`` return tuple."""
        sqrt_price_x96, tick, protocol_fee = values[:3]
        return cls(sqrt_price_x96=sqrt_price_x96, tick=tick, protocol_fee=protocol_fee)


@dataclass(frozen=True)
class PoolState:
    """Pool facts as of ``last_update_block``."""

    pool_id: str
    token0: str
    token1: str
    current_manager: Option
    rent_per_block: int
    swap_fee: int  # hundredths of a basis point
    liquidity: int
    sqrt_price_x96: int
    tick: int
    last_update_block: int

    def __post_init__(self):
        if not 0 <= self.swap_fee <= FEE_DENOMINATOR:
            raise ValidationError(f"swap_fee out of range: {self.swap_fee}")


@dataclass(frozen=True)
class AuctionState:
    """Rent auction facts: sitting manager and pending challenger."""

    current_manager: Option
    current_rent: int
    next_bidder: Option
    next_rent: int
    activation_block: int
    manager_deposit: int

    @property
    def has_challenger(self) -> bool:
        return isinstance(self.next_bidder, Some)

    @property
    def reference_rent(self) -> int:
        """Rent to outbid: the challenger's if one is pending, else the manager's."""
        return self.next_rent if self.has_challenger else self.current_rent


@dataclass(frozen=True)
class MarketData:
    """Market signals derived from the rolling per-pool history."""

    pool_id: str
    timestamp: int  # milliseconds since epoch
    volatility: float  # annualised
    volume24h: int  # wei
    volume_change: float  # percent
    price_change: float  # percent
    spread: float
    trades: int


@dataclass(frozen=True)
class Snapshot:
    """One observation of a pool."""

    pool_state: PoolState
    auction_state: AuctionState
    market_data: MarketData

    @property
    def block(self) -> int:
        return self.pool_state.last_update_block


@dataclass(frozen=True)
class OptimizationConfig:
    """Weights and bounds for fee optimization."""

    volatility_weight: float = 0.4
    volume_weight: float = 0.3
    spread_weight: float = 0.3
    min_fee: int = 100
    max_fee: int = 10000

    def with_weights(self, volatility: float, volume: float, spread: float) -> "OptimizationConfig":
        return OptimizationConfig(
            volatility_weight=volatility,
            volume_weight=volume,
            spread_weight=spread,
            min_fee=self.min_fee,
            max_fee=self.max_fee,
        )


@dataclass(frozen=True)
class OptimalFee:
    """Fee recommendation produced by a fee strategy."""

    fee: int
    confidence: float
    expected_volume: int
    expected_revenue: int
    reasoning: str


@dataclass(frozen=True)
class StrategyResult:
    """Outcome of one named fee strategy within a batch."""

    strategy_name: str
    outcome: Result


@dataclass(frozen=True)
class BidConfig:
    """Operator bidding parameters."""

    operator_address: str
    min_profit_margin: float
    max_bid_amount_wei: int
    risk_tolerance: float
    min_deposit_blocks: int = 100
    activation_delay: int = 5
    min_bid_increment: int = 1

    def adjusted(self, risk_tolerance: float, min_profit_margin: float) -> "BidConfig":
        return BidConfig(
            operator_address=self.operator_address,
            min_profit_margin=min_profit_margin,
            max_bid_amount_wei=self.max_bid_amount_wei,
            risk_tolerance=risk_tolerance,
            min_deposit_blocks=self.min_deposit_blocks,
            activation_delay=self.activation_delay,
            min_bid_increment=self.min_bid_increment,
        )


@dataclass(frozen=True)
class BidDecision:
    """Go / no-go bid decision with its economics."""

    should_bid: bool
    rent_amount: int
    expected_profit: int  # wei per block
    profit_margin: float
    risk_score: float
    reasoning: str
    total_expected_profit: int = 0


@dataclass(frozen=True)
class TransactionOutcome:
    """Receipt summary of a confirmed transaction."""

    hash: str
    block_number: int
    gas_used: int
    effective_gas_price: int
    status: str  # "success" | "failed"

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


@dataclass(frozen=True)
class PoolTarget:
    """A monitored pool: identifier plus the key used for writes."""

    pool_key: PoolKey
    pool_id: str = field(default="")

    def __post_init__(self):
        if not self.pool_id:
            object.__setattr__(self, "pool_id", self.pool_key.pool_id)


def div_trunc(numerator: int, denominator: int) -> int:
    """Integer division truncating toward zero, as the ledger's uint math does."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient
