"""
Configuration loading and validation for the arbitrage engine.

Settings come from a YAML file. Secrets and the usual deployment knobs are
read from the environment (a .env file is loaded with python-dotenv) and
take precedence over the YAML values.
"""

import os
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

import yaml
from dotenv import load_dotenv
from web3 import Web3

from .exceptions import ConfigError
from .sizing import DEFAULT_TIERS, MAX_DEPTH_FRACTION_LIMIT, SizingTier
from .utils import to_decimal

VENUE_KINDS = ("v2", "lb")

DEFAULT_FEE_BPS = {"v2": 30, "lb": 20}

DEFAULT_ANALYSIS_SIZES = [50, 100, 200, 300, 500]

# Public Avalanche C-Chain endpoints tried after rpc_url
DEFAULT_FALLBACK_RPCS = [
    "https://api.avax.network/ext/bc/C/rpc",
    "https://avalanche-c-chain-rpc.publicnode.com",
    "https://avalanche.drpc.org",
]

# env var -> (config key path, converter)
ENV_OVERRIDES = {
    "RPC_URL": (("rpc_url",), str),
    "ARB_FOR": (("tokens", "base", "address"), str),
    "ARB_AGAINST": (("tokens", "quote", "address"), str),
    "PRICE_DIFFERENCE": (("threshold_pct",), str),
    "UNITS": (("units",), int),
    "GAS_LIMIT": (("gas_limit",), int),
    "GAS_PRICE": (("gas_price_gwei",), float),
}


def _to_decimal(value: Any, field: str) -> Decimal:
    try:
        return to_decimal(value)
    except (InvalidOperation, ValueError) as e:
        raise ConfigError(f"Config field '{field}' must be numeric, got {value!r}") from e


def _checksum(value: Any, field: str) -> str:
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ConfigError(f"Config field '{field}' must be an address, got {value!r}")
    return Web3.to_checksum_address(value)


def apply_env_overrides(
    config_dict: Dict[str, Any], environ: Mapping[str, str]
) -> Dict[str, Any]:
    """
    Overlay environment values onto a loaded config dict.

    Args:
        config_dict: Parsed YAML
        environ: Environment mapping (os.environ in production)

    Returns:
        New dict with overrides applied
    """
    merged = dict(config_dict)
    for env_key, (path, convert) in ENV_OVERRIDES.items():
        raw = environ.get(env_key)
        if raw is None or raw == "":
            continue
        try:
            value = convert(raw)
        except ValueError as e:
            raise ConfigError(f"Environment variable {env_key}={raw!r} is invalid") from e

        node = merged
        for key in path[:-1]:
            child = dict(node.get(key) or {})
            node[key] = child
            node = child

        if path[-1] == "address" and str(node.get("address", "")).lower() != value.lower():
            # Pinned metadata belonged to the replaced token
            node.pop("decimals", None)
            node.pop("symbol", None)
        node[path[-1]] = value
    return merged


class TokenConfig:
    def __init__(self, role: str, raw: Any):
        if not isinstance(raw, dict):
            raise ConfigError(f"tokens.{role} must be a dict")
        self.address: str = _checksum(raw.get("address"), f"tokens.{role}.address")
        decimals = raw.get("decimals")
        self.decimals: Optional[int] = int(decimals) if decimals is not None else None
        self.symbol: Optional[str] = raw.get("symbol")


class VenueConfig:
    """
    One monitored venue.

    Attributes:
        name: Display name (e.g., "pangolin")
        kind: "v2" (constant product) or "lb" (Liquidity Book)
        pair: Pair contract address
        router: Optional router used for quoting
        fee_bps: Swap fee in basis points
        depth_bins: Bins on each side of the active bin counted as depth (lb only)
    """

    def __init__(self, slot: str, raw: Any):
        if not isinstance(raw, dict):
            raise ConfigError(f"venues.{slot} must be a dict")

        self.name: str = raw.get("name") or slot
        self.kind: str = raw.get("kind", "v2")
        if self.kind not in VENUE_KINDS:
            raise ConfigError(
                f"Venue '{self.name}' has invalid kind '{self.kind}' (must be v2 or lb)"
            )

        self.pair: str = _checksum(raw.get("pair"), f"venues.{slot}.pair")
        router = raw.get("router")
        self.router: Optional[str] = (
            _checksum(router, f"venues.{slot}.router") if router else None
        )
        self.fee_bps: int = int(raw.get("fee_bps", DEFAULT_FEE_BPS[self.kind]))
        if not 0 <= self.fee_bps < 10_000:
            raise ConfigError(f"Venue '{self.name}' fee_bps out of range: {self.fee_bps}")
        self.depth_bins: int = int(raw.get("depth_bins", 5))
        if self.depth_bins < 0:
            raise ConfigError(f"Venue '{self.name}' depth_bins must be >= 0")


class ArbConfig:
    """
    Parsed and validated configuration.

    Attributes:
        rpc_url: HTTP(S) RPC endpoint
        fallback_rpcs: Endpoints tried when rpc_url is unreachable
        chain_id: Expected chain id (43114 for Avalanche C-Chain)
        poll_sec: Seconds between Swap log polls
        base / quote: Token configs (capital is held in base)
        venue_a / venue_b: The two monitored venues
        threshold_pct: Minimum spread in percent
        fixed_cost_base: Execution cost estimate in base tokens
        units: Display decimals
        gas_limit / gas_price_gwei: Settlement gas settings
        cycle_timeout_sec: Budget for evaluation and simulation per cycle
        is_deployed: Live settlement toggle (False = dry run)
        arbitrage_address: Deployed arbitrage contract
        reference_venue: "a" or "b", depth used by the sizing tiers
        tiers / max_depth_fraction: Sizing policy
        analysis_sizes: Notionals for the trade-size analysis
    """

    def __init__(self, config_dict: Dict[str, Any]):
        """
        Raises:
            ConfigError: If required fields missing or invalid
        """
        self.rpc_url: str = self._get_required(config_dict, "rpc_url", str)
        self.fallback_rpcs: List[str] = list(
            config_dict.get("fallback_rpcs", DEFAULT_FALLBACK_RPCS)
        )
        self.chain_id: int = int(config_dict.get("chain_id", 43114))
        self.poll_sec: float = float(config_dict.get("poll_sec", 2))

        tokens = self._get_required(config_dict, "tokens", dict)
        self.base = TokenConfig("base", tokens.get("base"))
        self.quote = TokenConfig("quote", tokens.get("quote"))
        if self.base.address == self.quote.address:
            raise ConfigError("tokens.base and tokens.quote must differ")

        venues = self._get_required(config_dict, "venues", dict)
        self.venue_a = VenueConfig("a", venues.get("a"))
        self.venue_b = VenueConfig("b", venues.get("b"))
        if self.venue_a.pair == self.venue_b.pair:
            raise ConfigError("venues.a and venues.b must use different pairs")

        self.threshold_pct: Decimal = _to_decimal(
            config_dict.get("threshold_pct", "0.3"), "threshold_pct"
        )
        if self.threshold_pct <= 0:
            raise ConfigError("threshold_pct must be positive")
        self.fixed_cost_base: Decimal = _to_decimal(
            config_dict.get("fixed_cost_base", "0.006"), "fixed_cost_base"
        )
        self.units: int = int(config_dict.get("units", 6))
        self.gas_limit: int = int(config_dict.get("gas_limit", 400_000))
        self.gas_price_gwei: float = float(config_dict.get("gas_price_gwei", 30))
        self.cycle_timeout_sec: float = float(config_dict.get("cycle_timeout_sec", 30))

        settlement = config_dict.get("settlement") or {}
        if not isinstance(settlement, dict):
            raise ConfigError("settlement must be a dict")
        self.is_deployed: bool = bool(settlement.get("is_deployed", False))
        address = settlement.get("arbitrage_address")
        self.arbitrage_address: Optional[str] = (
            _checksum(address, "settlement.arbitrage_address") if address else None
        )
        if self.is_deployed and self.arbitrage_address is None:
            raise ConfigError("settlement.is_deployed requires arbitrage_address")
        self.receipt_timeout_sec: int = int(settlement.get("receipt_timeout_sec", 60))

        sizing = config_dict.get("sizing") or {}
        self.reference_venue: str = sizing.get(
            "reference_venue", self._default_reference_venue()
        )
        if self.reference_venue not in ("a", "b"):
            raise ConfigError(
                f"sizing.reference_venue must be 'a' or 'b', got {self.reference_venue!r}"
            )
        self.tiers: List[SizingTier] = self._parse_tiers(sizing.get("tiers"))
        self.max_depth_fraction: Decimal = _to_decimal(
            sizing.get("max_depth_fraction", "0.02"), "sizing.max_depth_fraction"
        )
        if not 0 < self.max_depth_fraction <= MAX_DEPTH_FRACTION_LIMIT:
            raise ConfigError(
                f"sizing.max_depth_fraction must be in (0, {MAX_DEPTH_FRACTION_LIMIT}], "
                f"got {self.max_depth_fraction}"
            )

        analysis = config_dict.get("analysis") or {}
        self.analysis_sizes: List[Decimal] = [
            _to_decimal(s, "analysis.sizes")
            for s in analysis.get("sizes", DEFAULT_ANALYSIS_SIZES)
        ]

    @staticmethod
    def _get_required(d: Dict, key: str, expected_type: type) -> Any:
        """Get required config field with type validation."""
        if key not in d:
            raise ConfigError(f"Missing required config field: {key}")
        val = d[key]
        if not isinstance(val, expected_type):
            raise ConfigError(
                f"Config field '{key}' must be {expected_type.__name__}, got {type(val).__name__}"
            )
        return val

    def _default_reference_venue(self) -> str:
        # Size against the constant-product pool when there is one
        if self.venue_a.kind == "v2":
            return "a"
        if self.venue_b.kind == "v2":
            return "b"
        return "a"

    @staticmethod
    def _parse_tiers(tiers_raw: Optional[List[Any]]) -> List[SizingTier]:
        if tiers_raw is None:
            return list(DEFAULT_TIERS)
        if not isinstance(tiers_raw, list) or not tiers_raw:
            raise ConfigError("sizing.tiers must be a non-empty list")

        tiers = []
        for i, tier in enumerate(tiers_raw):
            if not isinstance(tier, dict):
                raise ConfigError(f"Sizing tier {i} must be a dict")
            missing = [
                k for k in ("min_spread_pct", "cap", "depth_fraction") if k not in tier
            ]
            if missing:
                raise ConfigError(f"Sizing tier {i} missing {', '.join(missing)}")
            tiers.append(
                SizingTier(
                    min_spread_pct=_to_decimal(tier["min_spread_pct"], f"sizing.tiers[{i}]"),
                    cap_quote=_to_decimal(tier["cap"], f"sizing.tiers[{i}]"),
                    depth_fraction=_to_decimal(tier["depth_fraction"], f"sizing.tiers[{i}]"),
                )
            )
        return tiers

    @property
    def rpc_urls(self) -> List[str]:
        """rpc_url followed by the fallbacks, without duplicates."""
        urls = [self.rpc_url]
        for url in self.fallback_rpcs:
            if url not in urls:
                urls.append(url)
        return urls


def load_config(config_path: str, use_env: bool = True) -> ArbConfig:
    """
    Load and validate config from YAML file.

    Args:
        config_path: Path to config YAML file
        use_env: Apply .env / environment overrides

    Returns:
        Validated ArbConfig instance

    Raises:
        ConfigError: If config invalid or file not found
    """
    if not os.path.exists(config_path):
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigError("Config file must contain a YAML dictionary")

    if use_env:
        load_dotenv()
        config_dict = apply_env_overrides(config_dict, os.environ)

    return ArbConfig(config_dict)


def get_private_key(environ: Mapping[str, str] = os.environ) -> Optional[str]:
    """Trading key from PRIVATE_KEY; never read from YAML."""
    key = environ.get("PRIVATE_KEY")
    return key or None
