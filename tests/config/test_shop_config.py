"""Tests for loading and validating shop configuration (shop_config)."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from shop_config import get_active_config
from shop_config.loader import compute_checksum, load_yaml_file, parse_config
from shop_kernel.domain.values import PaymentMode
from shop_kernel.exceptions import ConfigurationError


def _valid() -> dict:
    return {
        "paper_widths": [9, 13],
        "currencies": ["₹", "$"],
        "default_currency": "₹",
        "stone_decimal_places": 2,
        "money_decimal_places": 2,
        "ledger_max_retries": 5,
    }


def _write(tmp_path: Path, data) -> Path:
    path = tmp_path / "shop.yaml"
    path.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")
    return path


class TestDefaults:
    def test_bundled_defaults_load(self):
        config = get_active_config()

        assert config.paper_widths == (9, 13, 16, 19, 20, 24)
        assert config.currencies == ("₹", "$")
        assert config.default_currency == "₹"
        assert config.stone_decimal_places == 2
        assert config.ledger_max_retries == 5
        assert PaymentMode.UPI in config.payment_modes
        assert config.reject_low_paper_stock is False

    def test_width_and_currency_helpers(self):
        config = get_active_config()

        assert config.is_valid_paper_width(13)
        assert not config.is_valid_paper_width(14)
        assert config.is_valid_currency("$")
        assert not config.is_valid_currency("€")

    def test_emits_config_trace(self, captured_logs):
        config = get_active_config()

        (trace,) = [r for r in captured_logs() if r["message"] == "SHOP_CONFIG_TRACE"]
        assert trace["config_id"] == config.config_id
        assert trace["checksum"] == config.checksum
        assert trace["paper_width_count"] == 6


class TestOverridePath:
    def test_loads_from_path(self, tmp_path):
        config = get_active_config(_write(tmp_path, {**_valid(), "config_id": "branch-2"}))

        assert config.config_id == "branch-2"
        assert config.paper_widths == (9, 13)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("paper_widths: [9, 13\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_yaml_file(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_yaml_file(_write(tmp_path, [1, 2, 3]))


class TestValidation:
    @pytest.mark.parametrize("key", list(_valid()))
    def test_required_keys(self, key):
        data = _valid()
        del data[key]

        with pytest.raises(ConfigurationError) as exc_info:
            parse_config(data)

        assert exc_info.value.setting == key

    @pytest.mark.parametrize(
        "widths",
        [[], [0], [13, 13], ["13"], [True]],
        ids=["empty", "zero", "duplicate", "string", "bool"],
    )
    def test_bad_paper_widths(self, widths):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_config({**_valid(), "paper_widths": widths})

        assert exc_info.value.setting == "paper_widths"

    def test_default_currency_must_be_listed(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_config({**_valid(), "default_currency": "€"})

        assert exc_info.value.setting == "default_currency"

    @pytest.mark.parametrize(
        "key, value",
        [
            ("stone_decimal_places", 10),
            ("stone_decimal_places", -1),
            ("money_decimal_places", "2"),
            ("ledger_max_retries", 0),
        ],
    )
    def test_numeric_bounds(self, key, value):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_config({**_valid(), key: value})

        assert exc_info.value.setting == key

    def test_unknown_payment_mode(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_config({**_valid(), "payment_modes": ["cash", "cheque"]})

        assert exc_info.value.setting == "payment_modes"


class TestPaperStockPolicy:
    def test_defaults_to_warning_only(self):
        assert parse_config(_valid()).reject_low_paper_stock is False

    def test_can_be_switched_on(self):
        assert parse_config({**_valid(), "reject_low_paper_stock": True}).reject_low_paper_stock

    @pytest.mark.parametrize("value", ["yes", 1, None])
    def test_must_be_bool(self, value):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_config({**_valid(), "reject_low_paper_stock": value})

        assert exc_info.value.setting == "reject_low_paper_stock"


class TestChecksum:
    def test_deterministic_and_order_independent(self):
        a = _valid()
        b = dict(reversed(list(a.items())))

        assert compute_checksum(a) == compute_checksum(b)

    def test_changes_with_content(self):
        assert compute_checksum(_valid()) != compute_checksum(
            {**_valid(), "ledger_max_retries": 6}
        )
