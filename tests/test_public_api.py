"""Tests for public API surface."""

from __future__ import annotations

import gatewaykit


class TestPublicAPI:
    def test_version_string(self) -> None:
        assert gatewaykit.__version__ == "0.1.0"

    def test_all_names_importable(self) -> None:
        for name in gatewaykit.__all__:
            obj = getattr(gatewaykit, name)
            assert obj is not None, f"{name} is None"

    def test_core_classes_available(self) -> None:
        assert gatewaykit.Gateway is not None
        assert gatewaykit.ConnectorSupervisor is not None
        assert gatewaykit.HookGateway is not None
        assert gatewaykit.RequestRouter is not None

    def test_subpackage_imports(self) -> None:
        from gatewaykit.connectors import probes
        from gatewaykit.core import supervisor
        from gatewaykit.hooks import mapping
        from gatewaykit.models import enums
        from gatewaykit.server import listener

        assert probes is not None
        assert supervisor is not None
        assert mapping is not None
        assert enums is not None
        assert listener is not None

    def test_exception_classes(self) -> None:
        assert issubclass(gatewaykit.GatewayError, Exception)
        assert issubclass(gatewaykit.ConnectorNotFoundError, gatewaykit.GatewayError)
