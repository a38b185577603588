"""
Unit tests for lb_arbitrage/config.py

Verifies YAML parsing, validation errors and environment overrides.
"""

import copy
import tempfile
import unittest
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import yaml

from lb_arbitrage.config import (
    ArbConfig,
    apply_env_overrides,
    get_private_key,
    load_config,
)
from lb_arbitrage.exceptions import ConfigError

WAVAX = "0xB31f66AA3C1e785363F0875A1B74E27b85FD66c7"
USDC = "0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E"

BASE_CONFIG = {
    "rpc_url": "https://api.avax.network/ext/bc/C/rpc",
    "tokens": {
        "base": {"address": WAVAX, "decimals": 18},
        "quote": {"address": USDC},
    },
    "venues": {
        "a": {"name": "traderjoe_lb", "kind": "lb", "pair": "0x" + "3" * 40},
        "b": {"name": "pangolin", "kind": "v2", "pair": "0x" + "4" * 40},
    },
}


def make_config(**overrides):
    config_dict = copy.deepcopy(BASE_CONFIG)
    config_dict.update(overrides)
    return config_dict


class TestArbConfigDefaults(unittest.TestCase):
    """Test defaults applied to a minimal config."""

    def setUp(self):
        self.config = ArbConfig(make_config())

    def test_defaults(self):
        self.assertEqual(self.config.chain_id, 43114)
        self.assertEqual(self.config.threshold_pct, Decimal("0.3"))
        self.assertEqual(self.config.fixed_cost_base, Decimal("0.006"))
        self.assertFalse(self.config.is_deployed)
        self.assertEqual(self.config.analysis_sizes, [Decimal(s) for s in (50, 100, 200, 300, 500)])

    def test_venue_defaults(self):
        self.assertEqual(self.config.venue_a.kind, "lb")
        self.assertEqual(self.config.venue_a.fee_bps, 20)
        self.assertEqual(self.config.venue_b.fee_bps, 30)
        self.assertEqual(self.config.venue_a.depth_bins, 5)

    def test_reference_venue_defaults_to_constant_product(self):
        self.assertEqual(self.config.reference_venue, "b")

    def test_token_decimals_optional(self):
        self.assertEqual(self.config.base.decimals, 18)
        self.assertIsNone(self.config.quote.decimals)

    def test_default_tiers(self):
        self.assertEqual(len(self.config.tiers), 4)
        self.assertEqual(self.config.max_depth_fraction, Decimal("0.02"))

    def test_rpc_urls_start_with_configured(self):
        urls = self.config.rpc_urls
        self.assertEqual(urls[0], BASE_CONFIG["rpc_url"])
        self.assertEqual(len(urls), len(set(urls)))


class TestArbConfigValidation(unittest.TestCase):
    """Test that invalid configs raise ConfigError."""

    def test_missing_rpc_url(self):
        config_dict = make_config()
        del config_dict["rpc_url"]
        with self.assertRaises(ConfigError):
            ArbConfig(config_dict)

    def test_bad_venue_kind(self):
        config_dict = make_config()
        config_dict["venues"]["a"]["kind"] = "v3"
        with self.assertRaisesRegex(ConfigError, "invalid kind"):
            ArbConfig(config_dict)

    def test_bad_address(self):
        config_dict = make_config()
        config_dict["tokens"]["base"]["address"] = "0x123"
        with self.assertRaises(ConfigError):
            ArbConfig(config_dict)

    def test_same_tokens(self):
        config_dict = make_config()
        config_dict["tokens"]["quote"]["address"] = WAVAX
        with self.assertRaises(ConfigError):
            ArbConfig(config_dict)

    def test_same_pairs(self):
        config_dict = make_config()
        config_dict["venues"]["b"]["pair"] = config_dict["venues"]["a"]["pair"]
        with self.assertRaises(ConfigError):
            ArbConfig(config_dict)

    def test_deployed_requires_contract(self):
        with self.assertRaisesRegex(ConfigError, "arbitrage_address"):
            ArbConfig(make_config(settlement={"is_deployed": True}))

    def test_bad_threshold(self):
        with self.assertRaises(ConfigError):
            ArbConfig(make_config(threshold_pct="lots"))
        with self.assertRaises(ConfigError):
            ArbConfig(make_config(threshold_pct=0))

    def test_depth_fraction_above_two_percent_rejected(self):
        with self.assertRaisesRegex(ConfigError, "max_depth_fraction"):
            ArbConfig(make_config(sizing={"max_depth_fraction": 0.1}))

    def test_tighter_depth_fraction_accepted(self):
        config = ArbConfig(make_config(sizing={"max_depth_fraction": 0.01}))
        self.assertEqual(config.max_depth_fraction, Decimal("0.01"))

    def test_bad_reference_venue(self):
        with self.assertRaises(ConfigError):
            ArbConfig(make_config(sizing={"reference_venue": "c"}))

    def test_tier_missing_field(self):
        with self.assertRaisesRegex(ConfigError, "depth_fraction"):
            ArbConfig(make_config(sizing={"tiers": [{"min_spread_pct": 1, "cap": 10}]}))

    def test_custom_tiers(self):
        config = ArbConfig(
            make_config(
                sizing={"tiers": [{"min_spread_pct": 0.5, "cap": 75, "depth_fraction": 0.01}]}
            )
        )
        self.assertEqual(config.tiers[0].cap_quote, Decimal("75"))
        self.assertEqual(config.tiers[0].min_spread_pct, Decimal("0.5"))


class TestEnvOverrides(unittest.TestCase):
    """Test environment variables taking precedence over YAML."""

    def test_overrides_applied(self):
        env = {
            "RPC_URL": "https://example.org/rpc",
            "PRICE_DIFFERENCE": "0.5",
            "UNITS": "4",
            "GAS_LIMIT": "500000",
            "GAS_PRICE": "40",
            "ARB_AGAINST": "0x" + "5" * 40,
        }
        config = ArbConfig(apply_env_overrides(make_config(), env))

        self.assertEqual(config.rpc_url, "https://example.org/rpc")
        self.assertEqual(config.threshold_pct, Decimal("0.5"))
        self.assertEqual(config.units, 4)
        self.assertEqual(config.gas_limit, 500000)
        self.assertEqual(config.gas_price_gwei, 40.0)
        self.assertEqual(config.quote.address, "0x" + "5" * 40)
        # Untouched nested values survive
        self.assertEqual(config.base.decimals, 18)

    def test_does_not_mutate_input(self):
        original = make_config()
        apply_env_overrides(original, {"ARB_FOR": "0x" + "6" * 40})
        self.assertEqual(original["tokens"]["base"]["address"], WAVAX)

    def test_empty_values_ignored(self):
        merged = apply_env_overrides(make_config(), {"RPC_URL": ""})
        self.assertEqual(merged["rpc_url"], BASE_CONFIG["rpc_url"])

    def test_token_override_drops_pinned_metadata(self):
        config_dict = make_config()
        config_dict["tokens"]["base"]["symbol"] = "WAVAX"
        merged = apply_env_overrides(config_dict, {"ARB_FOR": "0x" + "6" * 40})

        config = ArbConfig(merged)
        self.assertEqual(config.base.address, "0x" + "6" * 40)
        self.assertIsNone(config.base.decimals)
        self.assertIsNone(config.base.symbol)

    def test_same_token_override_keeps_pinned_metadata(self):
        merged = apply_env_overrides(make_config(), {"ARB_FOR": WAVAX.lower()})
        self.assertEqual(ArbConfig(merged).base.decimals, 18)

    def test_invalid_number(self):
        with self.assertRaises(ConfigError):
            apply_env_overrides(make_config(), {"UNITS": "six"})

    def test_private_key_only_from_env(self):
        self.assertEqual(get_private_key({"PRIVATE_KEY": "0xabc"}), "0xabc")
        self.assertIsNone(get_private_key({}))


class TestLoadConfig(unittest.TestCase):
    def test_load_yaml_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.yaml"
            path.write_text(yaml.safe_dump(make_config(threshold_pct=0.4)))

            with patch.dict("os.environ", {}, clear=True), patch(
                "lb_arbitrage.config.load_dotenv"
            ):
                config = load_config(str(path))

        self.assertEqual(config.threshold_pct, Decimal("0.4"))

    def test_missing_file(self):
        with self.assertRaisesRegex(ConfigError, "not found"):
            load_config("/nonexistent/config.yaml")

    def test_invalid_yaml(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "bad.yaml"
            path.write_text("rpc_url: [unclosed")
            with self.assertRaises(ConfigError):
                load_config(str(path), use_env=False)

    def test_non_dict_yaml(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "list.yaml"
            path.write_text("- a\n- b\n")
            with self.assertRaises(ConfigError):
                load_config(str(path), use_env=False)

    def test_shipped_config_loads(self):
        path = Path(__file__).resolve().parents[2] / "configs" / "avax_wavax_usdc.yaml"
        config = load_config(str(path), use_env=False)

        self.assertEqual(config.venue_a.kind, "lb")
        self.assertEqual(config.venue_b.kind, "v2")
        self.assertEqual(config.reference_venue, "b")
        self.assertFalse(config.is_deployed)
