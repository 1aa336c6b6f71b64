"""Tests for environment layering and environment-backed configuration."""

import pytest

from stripe_payments import ConfigError, create_client, load_client_config, verify_webhook
from stripe_payments.core.environment import build_environment, load_env_file, parse_env_text
from stripe_payments.core.webhooks import generate_test_header_string


@pytest.fixture
def env_file(tmp_path):
    path = tmp_path / ".env"
    path.write_text(
        "\n".join(
            [
                "# local settings",
                "STRIPE_API_KEY=sk_test_from_file",
                'export STRIPE_ACCOUNT="acct_file"',
                "STRIPE_WEBHOOK_SECRET=whsec_a, whsec_b",
                "not a setting",
            ]
        ),
        encoding="utf-8",
    )
    return str(path)


def test_env_file_parsed(env_file):
    environment = build_environment(env_file=env_file, base={})
    assert environment.get("STRIPE_API_KEY") == "sk_test_from_file"
    assert environment.get("STRIPE_ACCOUNT") == "acct_file"
    assert environment.webhook_secrets() == ["whsec_a", "whsec_b"]


def test_precedence(env_file):
    environment = build_environment(
        env_file=env_file,
        base={"STRIPE_API_KEY": "sk_test_from_process"},
        overrides={"STRIPE_ACCOUNT": "acct_override"},
    )
    assert environment.get("STRIPE_API_KEY") == "sk_test_from_process"
    assert environment.get("STRIPE_ACCOUNT") == "acct_override"


def test_missing_env_file_is_ignored(tmp_path):
    environment = build_environment(env_file=str(tmp_path / "missing.env"), base={})
    assert environment.variables == {}


def test_load_env_file_does_not_replace(env_file):
    target = {"STRIPE_API_KEY": "sk_test_existing"}
    loaded = load_env_file(env_file, environ=target)
    assert loaded["STRIPE_API_KEY"] == "sk_test_existing"
    assert target["STRIPE_ACCOUNT"] == "acct_file"


def test_load_client_config(env_file):
    config = load_client_config(
        env_file=env_file,
        base={
            "STRIPE_MAX_NETWORK_RETRIES": "4",
            "STRIPE_TIMEOUT_MS": "1000",
            "STRIPE_TELEMETRY": "false",
            "STRIPE_APP_NAME": "MyApp",
        },
    )
    assert config.api_key == "sk_test_from_file"
    assert config.stripe_account == "acct_file"
    assert config.max_network_retries == 4
    assert config.timeout == 1000
    assert config.telemetry is False
    assert config.app_info.name == "MyApp"


def test_load_client_config_explicit_key_wins(env_file):
    config = load_client_config(env_file=env_file, base={}, api_key="sk_test_explicit")
    assert config.api_key == "sk_test_explicit"


def test_load_client_config_bad_integer():
    with pytest.raises(ConfigError, match="STRIPE_PORT must be an integer"):
        load_client_config(env_file=None, base={"STRIPE_API_KEY": "sk", "STRIPE_PORT": "abc"})


def test_load_client_config_without_key():
    with pytest.raises(ConfigError, match="Neither api_key nor config.authenticator provided"):
        load_client_config(env_file=None, base={})


def test_create_client_from_environment(env_file):
    client = create_client(env_file=env_file, base={})
    assert client.config.api_key == "sk_test_from_file"


def test_create_client_rejects_mixed_arguments():
    config = load_client_config(env_file=None, base={"STRIPE_API_KEY": "sk"})
    with pytest.raises(ValueError):
        create_client(config=config, api_key="sk_other")


def test_verify_webhook_uses_environment_secrets(env_file):
    payload = '{"id":"evt_1","type":"customer.created"}'
    header = generate_test_header_string(payload, "whsec_b")
    event = verify_webhook(payload, header, env_file=env_file, base={})
    assert event.type == "customer.created"


def test_verify_webhook_thin(env_file):
    payload = '{"event_type":"account.created"}'
    header = generate_test_header_string(payload, "whsec_a")
    event = verify_webhook(payload, header, thin=True, env_file=env_file, base={})
    assert event.event_type == "account.created"


def test_verify_webhook_requires_secret():
    with pytest.raises(ConfigError, match="STRIPE_WEBHOOK_SECRET must be provided"):
        verify_webhook("{}", "t=1,v1=abc", env_file=None, base={})


def test_parse_env_text():
    text = "\n".join(
        [
            "export STRIPE_HOST=localhost",
            "STRIPE_APP_NAME='My App'",
            "=orphan",
            "STRIPE_URL=https://x.test/?a=b",
        ]
    )
    assert parse_env_text(text) == {
        "STRIPE_HOST": "localhost",
        "STRIPE_APP_NAME": "My App",
        "STRIPE_URL": "https://x.test/?a=b",
    }


def test_config_values_skip_empty_variables():
    environment = build_environment(
        env_file=None,
        base={"STRIPE_HOST": "", "STRIPE_CONTEXT": "ctx_1", "STRIPE_TELEMETRY": "off"},
    )
    assert environment.config_values() == {"stripe_context": "ctx_1", "telemetry": False}
