from syntaxmap import config


def test_database_url_escapes_credentials(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setitem(config.DATABASE_CONFIG, "user", "app user")
    monkeypatch.setitem(config.DATABASE_CONFIG, "password", "p@ss:w/rd")
    monkeypatch.setitem(config.DATABASE_CONFIG, "host", "db")
    monkeypatch.setitem(config.DATABASE_CONFIG, "port", "5432")
    monkeypatch.setitem(config.DATABASE_CONFIG, "database", "syntaxmap")
    assert config.database_url() == "postgresql://app%20user:p%40ss%3Aw%2Frd@db:5432/syntaxmap"


def test_database_url_upgrades_legacy_scheme(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@h:5432/d")
    assert config.database_url() == "postgresql://u:p@h:5432/d"
