# -*- coding: utf-8 -*-
"""
Plugin system for truthbot.

Front ends deliver chat events to the registry, which hands them to the
handlers plugins registered for that event type. Plugins are listed in
the configuration and imported by module path.
"""
from twisted.internet import defer
from twisted.logger import Logger
from typing import Callable, Dict, List, Optional
from abc import ABC, abstractmethod

log = Logger()


class PluginRegistry:
    """
    Registry for loaded plugins and their event handlers.
    """

    def __init__(self, reactor, config: Optional[Dict] = None):
        """
        Args:
            reactor: Twisted reactor plugins schedule their work on
            config: Configuration dictionary shared by all plugins
        """
        self.reactor = reactor
        self.config = config or {}
        self.plugins: Dict[str, 'Plugin'] = {}
        self.handlers: Dict[str, List[Callable]] = {}

    def register_plugin(self, plugin: 'Plugin') -> None:
        name = plugin.name
        if name in self.plugins:
            log.warn(f"Plugin {name} already registered, replacing")
        self.plugins[name] = plugin
        log.info(f"Registered plugin: {name}")

    def register_handler(self, event_type: str, handler: Callable) -> None:
        self.handlers.setdefault(event_type, []).append(handler)
        log.debug(f"Registered handler for event: {event_type}")

    def unregister_handler(self, event_type: str, handler: Callable) -> None:
        try:
            self.handlers.get(event_type, []).remove(handler)
        except ValueError:
            log.warn(f"Handler not found for event: {event_type}")
        else:
            log.debug(f"Unregistered handler for event: {event_type}")

    def get_handlers(self, event_type: str) -> List[Callable]:
        return self.handlers.get(event_type, [])

    def dispatch(self, event_type: str, *args) -> defer.Deferred:
        """
        Call every handler registered for an event.

        A handler may return a Deferred; the returned Deferred fires with
        the list of handler results once all of them have fired. A failing
        handler is logged and contributes None.

        Args:
            event_type: Type of event (e.g. 'privmsg')
            *args: Arguments passed to each handler

        Returns:
            Deferred firing with the list of handler results
        """
        results = []
        for handler in list(self.get_handlers(event_type)):
            d = defer.maybeDeferred(handler, *args)
            d.addErrback(self._handler_failed, event_type)
            results.append(d)
        return defer.gatherResults(results)

    def _handler_failed(self, failure, event_type):
        log.failure(f"Handler for {event_type} failed", failure=failure)

    def load_plugins(self, plugin_configs: List[Dict]) -> None:
        """
        Import and register the plugins named in configuration.

        Each entry holds 'name', 'module', an optional 'enabled' flag and an
        optional 'config' dictionary. The module must define a load()
        function taking the registry and the entry.
        """
        for plugin_config in plugin_configs:
            plugin_name = plugin_config.get('name')
            plugin_module = plugin_config.get('module')

            if not plugin_config.get('enabled', True):
                log.info(f"Plugin {plugin_name} is disabled, skipping")
                continue

            if not plugin_module:
                log.error(f"Plugin {plugin_name} missing module path")
                continue

            try:
                module = __import__(plugin_module, fromlist=[''])
                if hasattr(module, 'load'):
                    plugin = module.load(self, plugin_config)
                    if plugin:
                        self.register_plugin(plugin)
                else:
                    log.error(f"Plugin module {plugin_module} has no load() function")
            except Exception as e:
                log.failure(f"Failed to load plugin {plugin_name}: {e}")

    def unload_plugin(self, plugin_name: str) -> None:
        plugin = self.plugins.pop(plugin_name, None)
        if plugin is None:
            log.warn(f"Plugin {plugin_name} not found")
        else:
            plugin.unload()
            log.info(f"Unloaded plugin: {plugin_name}")


class Plugin(ABC):
    """
    Base class for truthbot plugins.

    Subclasses implement load() to register their handlers.
    """

    def __init__(self, name: str, registry: PluginRegistry, config: Optional[Dict] = None):
        self.name = name
        self.registry = registry
        self.config = config or {}
        self.reactor = registry.reactor
        self._handlers = []

    @abstractmethod
    def load(self) -> None:
        pass

    def unload(self) -> None:
        """Remove every handler this plugin registered."""
        for event_type, handler in self._handlers:
            self.registry.unregister_handler(event_type, handler)
        self._handlers = []

    def register_handler(self, event_type: str, handler: Callable) -> None:
        self._handlers.append((event_type, handler))
        self.registry.register_handler(event_type, handler)
