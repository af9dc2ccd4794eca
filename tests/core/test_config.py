# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Tests for Config loading and property binding."""

from __future__ import annotations

import pytest

from samoc.core.config import Config, config_properties
from samoc.core.properties import SagaProperties, ServiceProperties


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("SAMOC_SAGA_DISABLE_ROLLBACK", "BILLING_STG_URL", "SAMOC_SERVICES_BILLING_STG"):
        monkeypatch.delenv(name, raising=False)


class TestConfig:
    def test_dot_notation_lookup(self):
        config = Config({"samoc": {"saga": {"disable-rollback": True}}})
        assert config.get("samoc.saga.disable-rollback") is True
        assert config.get("samoc.saga.missing", "fallback") == "fallback"

    def test_env_var_overrides_file_value(self, monkeypatch):
        monkeypatch.setenv("SAMOC_SAGA_DISABLE_ROLLBACK", "true")
        config = Config({"samoc": {"saga": {"disable-rollback": False}}})
        assert config.get("samoc.saga.disable-rollback") == "true"

    def test_placeholder_uses_default(self):
        config = Config({"url": "${NOT_SET_ANYWHERE_123:http://fallback}"})
        assert config.get("url") == "http://fallback"

    def test_placeholder_reads_environment(self, monkeypatch):
        monkeypatch.setenv("BILLING_STG_URL", "http://billing.stg")
        config = Config({"url": "${BILLING_STG_URL:http://fallback}"})
        assert config.get("url") == "http://billing.stg"

    def test_unresolvable_placeholder_raises(self):
        config = Config({"url": "${NOT_SET_ANYWHERE_123}"})
        with pytest.raises(ValueError):
            config.get("url")

    def test_from_file_merges_over_defaults_and_profiles(self, tmp_path):
        (tmp_path / "samoc.yaml").write_text("samoc:\n  saga:\n    ignore-cache-errors: true\n")
        (tmp_path / "samoc-qa.yaml").write_text("samoc:\n  saga:\n    read-retry-attempts: 5\n")

        config = Config.from_file(tmp_path / "samoc.yaml", active_profiles=["qa"])

        assert config.get("samoc.saga.ignore-cache-errors") is True
        assert config.get("samoc.saga.read-retry-attempts") == 5
        assert config.get("samoc.saga.db-retry-attempts") == 3
        assert len(config.loaded_sources) == 3

    def test_missing_file_keeps_defaults(self, tmp_path):
        config = Config.from_file(tmp_path / "absent.yaml")
        assert config.get("samoc.logging.format") == "console"


class TestBinding:
    def test_bind_saga_properties_with_env_override(self, monkeypatch):
        monkeypatch.setenv("SAMOC_SAGA_DISABLE_ROLLBACK", "true")
        props = Config.from_file("does-not-exist.yaml").bind(SagaProperties)
        assert props.disable_rollback is True
        assert props.read_retry_attempts == 3
        assert props.read_retry_base_delay.total_seconds() == 0.5

    def test_bind_service_properties_from_defaults(self):
        services = Config.from_file("does-not-exist.yaml").bind(ServiceProperties)
        assert services.billing.url_for("stg") == "http://localhost:8081"
        assert services.auth_cache.url_for("prod") == "http://localhost:8085"

    def test_bind_rejects_invalid_values(self):
        config = Config({"samoc": {"saga": {"read-retry-attempts": 0}}})
        with pytest.raises(ValueError, match="SagaProperties"):
            config.bind(SagaProperties)

    def test_bind_requires_decorated_class(self):
        class Plain:
            pass

        with pytest.raises(ValueError):
            Config({}).bind(Plain)

    def test_config_properties_on_dataclass(self):
        from dataclasses import dataclass

        @config_properties(prefix="samoc.custom")
        @dataclass
        class Custom:
            retries: int = 1
            enabled: bool = False

        custom = Config({"samoc": {"custom": {"retries": "4", "enabled": "yes"}}}).bind(Custom)
        assert custom.retries == 4
        assert custom.enabled is True
