import pytest

from aggregator.settings import ConfigError, Settings, SourceConfig, load_config


def test_sources_from_config_then_env():
    config = {
        "sources": [
            {"name": "AIR", "url": "https://air/sub"},
            {"name": "OFF", "url": "https://off/sub", "enabled": False},
            {"name": "NOURL"},
        ]
    }
    env = {"SUB_LINK_ZETA": "https://z/sub", "SUB_LINK_BETA": "https://b/sub", "SUB_LINK_AIR": "https://dup", "PATH": "/bin"}
    settings = Settings.from_config(config, env)
    assert settings.sources == [
        SourceConfig("AIR", "https://air/sub"),
        SourceConfig("BETA", "https://b/sub"),
        SourceConfig("ZETA", "https://z/sub"),
    ]


def test_template_url_from_github_env():
    env = {"GITHUB_USER": "me", "REPO_NAME": "profiles", "GITHUB_TOKEN": "t", "AUTH_TOKEN": "k"}
    settings = Settings.from_config({}, env)
    assert settings.template_url == "https://raw.githubusercontent.com/me/profiles/main/profiles/main-profile.json"
    assert settings.github_token == "t"
    assert settings.auth_token == "k"


def test_explicit_template_url_wins():
    env = {"TEMPLATE_URL": "https://x/profile.json", "GITHUB_USER": "me", "REPO_NAME": "r", "BRANCH": "dev"}
    assert Settings.from_config({}, env).template_url == "https://x/profile.json"
    del env["TEMPLATE_URL"]
    assert Settings.from_config({}, env).template_url.endswith("/me/r/dev/profiles/main-profile.json")


def test_missing_template_and_token():
    settings = Settings.from_config({}, {})
    assert settings.template_url is None
    assert settings.auth_token is None
    assert settings.timeout == 25.0


def test_load_config(tmp_path):
    good = tmp_path / "config.yaml"
    good.write_text("fetch:\n  timeout: 5\n", encoding="utf-8")
    assert load_config(str(good)) == {"fetch": {"timeout": 5}}
    assert load_config(None) == {}

    bad = tmp_path / "bad.yaml"
    bad.write_text("fetch: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(bad))

    scalar = tmp_path / "scalar.yaml"
    scalar.write_text("just text\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(scalar))

    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "missing.yaml"))
