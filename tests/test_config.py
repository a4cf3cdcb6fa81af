import pytest

from config import DEFAULT_ALLOWED_ORIGINS, ConfigError, load_settings

BASE_ENV = {
    "RAZORPAY_KEY_ID": "rzp_test",
    "RAZORPAY_KEY_SECRET": "secret",
    "MONGO_URI": "mongodb://db:27017",
    "GOOGLE_CLIENT_ID": "client",
    "JWT_SECRET": "jwt",
}


def test_defaults():
    s = load_settings(dict(BASE_ENV))
    assert s.mongo_db_name == "checkout"
    assert s.session_ttl_days == 7
    assert s.default_currency == "INR"
    assert s.checkout_requires_login is True
    assert s.allowed_origins == DEFAULT_ALLOWED_ORIGINS
    assert s.port == 8000


def test_overrides():
    env = dict(
        BASE_ENV,
        ALLOWED_ORIGINS="https://shop.example/, http://localhost:5173",
        DEFAULT_CURRENCY="usd",
        CHECKOUT_REQUIRES_LOGIN="false",
        PORT="3000",
        LOG_LEVEL="debug",
    )
    s = load_settings(env)
    assert s.allowed_origins == ["https://shop.example", "http://localhost:5173"]
    assert s.default_currency == "USD"
    assert s.checkout_requires_login is False
    assert s.port == 3000
    assert s.log_level == "DEBUG"


def test_missing_required_keys_are_all_named():
    env = dict(BASE_ENV)
    del env["JWT_SECRET"]
    del env["MONGO_URI"]
    with pytest.raises(ConfigError) as e:
        load_settings(env)
    assert "JWT_SECRET" in str(e.value) and "MONGO_URI" in str(e.value)


@pytest.mark.parametrize("env", [{"DEFAULT_CURRENCY": "RUPEE"}, {"PORT": "eighty"}])
def test_invalid_values(env):
    with pytest.raises(ConfigError):
        load_settings(dict(BASE_ENV, **env))
