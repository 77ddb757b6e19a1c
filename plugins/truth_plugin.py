# -*- coding: utf-8 -*-
"""
Truth table plugin for truthbot.

Handles the !truth command, which replies with the truth table of a boolean
expression, and the !rules command, which explains the expression syntax.
"""
import truth_table
from plugin import Plugin
from twisted.internet import defer, task
from twisted.logger import Logger

log = Logger()

TRUTH_COMMAND = "!truth"
RULES_COMMAND = "!rules"


class TruthPlugin(Plugin):
    """Plugin replying to !truth and !rules commands."""

    def load(self):
        log.info(f"Loading {self.name} plugin")
        self.max_variables = int(self.config.get('max_variables', 6))
        self.line_delay = float(self.config.get('line_delay', 1.0))
        self.sessions = {}
        self.register_handler('privmsg', self.on_privmsg)
        log.info(f"{self.name} plugin loaded successfully")

    def unload(self):
        super().unload()
        self.sessions = {}

    def on_privmsg(self, protocol, user, channel, message):
        """
        Handle privmsg events, responding to !truth and !rules commands.

        Args:
            protocol: Front end protocol with msg() and nickname
            user: User who sent the message (nick!user@host)
            channel: Channel name or bot nickname (for private messages)
            message: Message text

        Returns:
            Deferred firing once every reply line was sent, or None when
            the message is not a command of this plugin
        """
        command, _, suffix = message.strip().partition(" ")
        if command not in (TRUTH_COMMAND, RULES_COMMAND):
            return None

        if channel == protocol.nickname:
            target = user.split('!')[0]
        else:
            target = channel

        if command == RULES_COMMAND:
            lines = list(truth_table.RULES)
        else:
            lines = self.evaluate(target, suffix)
        return defer.ensureDeferred(self.send_lines(protocol, target, lines))

    def session(self, target):
        try:
            return self.sessions[target]
        except KeyError:
            session = truth_table.ExpressionSession(self.max_variables)
            self.sessions[target] = session
            return session

    def evaluate(self, target, expression):
        session = self.session(target)
        if expression != session.text:
            session.change(expression)
        state = session.process()
        if state == truth_table.VALIDATED:
            log.info(f"Truth table for {target}: {session.table.expression}")
            return session.table.format_lines()
        lines = []
        if session.error_message:
            lines.extend(session.diagnostic.lines())
        lines.extend(truth_table.RULES)
        return lines

    async def send_lines(self, protocol, target, lines):
        for i, line in enumerate(lines):
            if i and self.line_delay:
                await task.deferLater(self.reactor, self.line_delay,
                                      lambda: None)
            protocol.msg(target, line)


def load(registry, config):
    """
    Plugin entry point called by PluginRegistry when loading the plugin.

    Args:
        registry: PluginRegistry instance
        config: Plugin configuration dictionary

    Returns:
        TruthPlugin instance
    """
    plugin_name = config.get('name', 'truth')
    plugin_config = config.get('config', {})
    plugin = TruthPlugin(plugin_name, registry, plugin_config)
    plugin.load()
    return plugin
