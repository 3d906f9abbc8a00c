"""Tests for the extension module registry"""

import asyncio
import logging
import pytest
from core.message import IrcMessage
from core.module_system import (
    ModuleRegistry, discover_modules, get_module_factory, is_enabled
)

class TestModuleRegistration:
    """Test loading modules from configuration"""

    def test_register_known_module(self, registry):
        """Test a module resolves by name and is stored lowercase"""
        assert registry.register_module("Alpha", {"url": "x"})
        assert registry.names() == ["alpha"]
        assert registry.get("alpha").settings == {"url": "x"}

    def test_disabled_module_is_skipped(self, registry):
        """Test load = false in any spelling keeps a module out"""
        for value in (False, 0, "0", "false", "off"):
            assert not registry.register_module("alpha", {"load": value})
        assert registry.names() == []
        assert "alpha" not in registry.descriptors

    def test_class_setting_picks_factory(self, registry):
        """Test the class setting overrides the factory looked up"""
        assert registry.register_module("second", {"class": "beta"})
        assert type(registry.get("second")).__name__ == "BetaModule"

    def test_unknown_module_is_recorded(self, registry, caplog):
        """Test a missing implementation is logged and left absent"""
        with caplog.at_level(logging.ERROR):
            assert not registry.register_module("nosuchmodule", {})
        assert registry.get("nosuchmodule") is None
        assert registry.descriptors["nosuchmodule"].error == "Class nosuchmodule not found."
        assert "Failed to load module nosuchmodule" in caplog.text

    def test_load_failure_does_not_stop_others(self, registry, caplog):
        """Test modules before and after a failing one still load"""
        with caplog.at_level(logging.ERROR):
            registry.register_all({
                "alpha": {},
                "broken": {},
                "beta": {},
            })
        assert registry.names() == ["alpha", "beta"]
        assert not registry.descriptors["broken"].loaded
        assert "missing required configuration parameter: url" in caplog.text

    def test_duplicate_name_is_refused(self, registry):
        """Test at most one instance exists per name"""
        assert registry.register_module("alpha", {})
        first = registry.get("alpha")
        assert not registry.register_module("alpha", {})
        assert registry.get("alpha") is first

    def test_failed_module_is_not_retried(self, registry):
        """Test a failed name stays failed"""
        registry.register_module("broken", {})
        assert not registry.register_module("broken", {})
        assert registry.get("broken") is None

class TestModuleHooks:
    """Test calling into registered modules"""

    def test_initialize_runs_once(self, registry, connected_server):
        """Test init is called exactly once per module"""
        registry.register_all({"alpha": {}, "beta": {}})
        asyncio.run(registry.initialize(connected_server))
        asyncio.run(registry.initialize(connected_server))
        assert registry.get("alpha").calls == [("init",)]
        assert registry.get("beta").calls == [("init",)]

    def test_interval_events_run_in_order(self, registry, connected_server):
        """Test every module gets the interval hook in registration order"""
        events = []
        registry.register_all({"beta": {"events": events}, "alpha": {"events": events}})
        asyncio.run(registry.process_interval_events(connected_server))
        assert events == [("interval", "beta"), ("interval", "alpha")]

    def test_interval_failure_is_isolated(self, registry, connected_server, caplog):
        """Test one module failing its interval hook does not stop the rest"""
        events = []
        registry.register_all({
            "alpha": {"events": events},
            "flaky": {},
            "beta": {"events": events},
        })
        with caplog.at_level(logging.ERROR):
            asyncio.run(registry.process_interval_events(connected_server))
        assert events == [("interval", "alpha"), ("interval", "beta")]
        assert "Module flaky failed in process_interval_events: flaky interval exploded" in caplog.text

    def test_dispatch_failure_is_isolated(self, registry, connected_server):
        """Test a failing handler reports False instead of raising"""
        registry.register_all({"flaky": {}, "alpha": {}})
        message = IrcMessage(command="PRIVMSG", body="x")
        assert not asyncio.run(registry.dispatch(connected_server, "flaky", message))
        assert asyncio.run(registry.dispatch(connected_server, "alpha", message))
        assert registry.get("alpha").calls == [("handle_message", "x")]

    def test_dispatch_to_unknown_module(self, registry, connected_server):
        assert not asyncio.run(registry.dispatch(connected_server, "ghost", IrcMessage()))

    def test_help_messages_skip_failures(self, registry):
        """Test help collection survives a module that cannot describe itself"""
        registry.register_all({"alpha": {}, "flaky": {}})
        assert registry.help_messages() == [
            ("alpha", {".alpha": "Does alpha things", ".alpha more": "Does more"})
        ]

    def test_sync_hooks_are_supported(self, registry, connected_server):
        """Test a module may implement hooks as plain methods"""
        from core.module_system import IrcModule, register_module

        @register_module("plain")
        class PlainModule(IrcModule):
            def configure(self, settings):
                super().configure(settings)
                self.seen = []

            def handle_message(self, irc, message):
                self.seen.append(message.body)

        registry.register_module("plain", {})
        asyncio.run(registry.dispatch(connected_server, "plain", IrcMessage(body="hi")))
        assert registry.get("plain").seen == ["hi"]

class TestHelpers:
    """Test module system helpers"""

    @pytest.mark.parametrize("settings,expected", [
        ({}, True),
        ({"load": True}, True),
        ({"load": "1"}, True),
        ({"load": "yes"}, True),
        ({"load": "no"}, False),
        ({"load": ""}, False),
    ])
    def test_is_enabled(self, settings, expected):
        assert is_enabled(settings) is expected

    def test_register_module_names_the_class(self):
        """Test the decorator stamps the lowercase name on the class"""
        from core.module_system import IrcModule, register_module

        class UnnamedModule(IrcModule):
            async def handle_message(self, irc, message):
                pass

        assert UnnamedModule.name is None
        assert register_module("Unnamed")(UnnamedModule) is UnnamedModule
        assert UnnamedModule.name == "unnamed"
        assert get_module_factory("UNNAMED") is UnnamedModule

    def test_discover_bundled_modules(self):
        """Test the bundled extension modules register their factories"""
        assert discover_modules() >= 2
        assert get_module_factory("svn").__name__ == "SvnModule"
        assert get_module_factory("trac").__name__ == "TracModule"

    def test_discover_missing_package(self):
        assert discover_modules("no_such_package_here") == 0
