"""Environment-driven settings and their validation."""

import pytest
from decimal import Decimal

from Config.config_manager import get_config
from Config.exceptions import ConfigError, ConfigTypeError
from Config.validators import (
    ChoiceRule,
    LEDGER_RULES,
    RangeRule,
    TypeRule,
    validate_config_dict,
    validate_ledger_config,
)


@pytest.fixture
def ledger_env(monkeypatch):
    """Set env vars, reload the shared config, restore it afterwards."""
    config = get_config()

    def apply(**values):
        for key, value in values.items():
            monkeypatch.setenv(key, value)
        config.reload_config()
        return config

    yield apply
    monkeypatch.undo()
    config.reload_config()


def test_config_is_shared():
    assert get_config() is get_config()


def test_defaults(ledger_env, monkeypatch):
    for key in ('BROKERAGE_RATE', 'ACCRUAL_BATCH_SIZE', 'DETAIL_INSERT_CHUNK', 'DEFAULT_EXCHANGE'):
        monkeypatch.delenv(key, raising=False)
    config = ledger_env()

    assert config.brokerage_rate == Decimal('10')
    assert config.accrual_batch_size == 10
    assert config.detail_insert_chunk == 500
    assert config.default_exchange == 'NSE'
    assert config.exchange_timezone == 'Asia/Kolkata'


def test_environment_overrides(ledger_env):
    config = ledger_env(
        BROKERAGE_RATE='12.5',
        ACCRUAL_BATCH_SIZE='4',
        DEFAULT_EXCHANGE='bse',
        DATABASE_URL='sqlite+aiosqlite:///other.db',
    )

    assert config.brokerage_rate == Decimal('12.5')
    assert config.accrual_batch_size == 4
    assert config.default_exchange == 'BSE'
    assert config.database_url == 'sqlite+aiosqlite:///other.db'
    assert validate_ledger_config(config).is_valid


def test_unparsable_value(ledger_env):
    with pytest.raises(ConfigTypeError) as exc_info:
        ledger_env(ACCRUAL_BATCH_SIZE='many')

    assert exc_info.value.key == 'ACCRUAL_BATCH_SIZE'


def test_out_of_range_value_fails_validation(ledger_env):
    config = ledger_env(BROKERAGE_RATE='0', DEFAULT_EXCHANGE='LSE')

    result = validate_ledger_config(config)

    assert not result.is_valid
    assert {key for key, _ in result.errors} == {'BROKERAGE_RATE', 'DEFAULT_EXCHANGE'}
    with pytest.raises(ConfigError):
        validate_ledger_config(config, raise_on_error=True)


class TestRules:

    def test_type_rule(self):
        rule = TypeRule('X', int)

        assert rule.validate(5) is None
        assert rule.validate(True) is not None
        assert rule.validate(Decimal('5')) is not None

    def test_range_rule_exclusive_min(self):
        rule = RangeRule('X', min_val=0, max_val=100, min_inclusive=False)

        assert rule.validate(Decimal('0.01')) is None
        assert rule.validate(0) is not None
        assert rule.validate(101) is not None

    def test_choice_rule(self):
        assert ChoiceRule('X', ['NSE', 'BSE']).validate('NSE') is None
        assert ChoiceRule('X', ['NSE', 'BSE']).validate('nse') is not None

    def test_missing_keys_warn(self):
        result = validate_config_dict({}, LEDGER_RULES)

        assert result.is_valid
        assert 'BROKERAGE_RATE' in {key for key, _ in result.warnings}

    def test_type_failure_skips_range(self):
        result = validate_config_dict({'ACCRUAL_BATCH_SIZE': 'ten'}, LEDGER_RULES)

        assert [key for key, _ in result.errors] == ['ACCRUAL_BATCH_SIZE']

    def test_report(self):
        result = validate_config_dict({'DB_POOL_SIZE': 0}, LEDGER_RULES)

        report = result.format_report()
        assert 'VALIDATION ERRORS' in report
        assert 'DB_POOL_SIZE' in report
