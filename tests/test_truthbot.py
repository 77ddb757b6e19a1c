import json
from twisted.trial import unittest
from twisted.internet import task
from twisted.internet.testing import StringTransport
from plugin import PluginRegistry
import truth_table
import truthbot


class ConsoleProtocolTests(unittest.TestCase):

    def setUp(self):
        self.clock = task.Clock()
        self.registry = PluginRegistry(self.clock, {})
        self.registry.load_plugins(truthbot.DEFAULT_PLUGINS)
        self.protocol = truthbot.ConsoleProtocol(self.registry)
        self.transport = StringTransport()
        self.protocol.makeConnection(self.transport)

    def output(self):
        return self.transport.value().decode("utf-8").splitlines()

    def test_expression_line(self):
        self.protocol.dataReceived(b"A*B\n")
        self.assertEqual(self.output(), [
            "A | B | Result",
            "0 | 0 | 0",
            "0 | 1 | 0",
            "1 | 0 | 0",
            "1 | 1 | 1",
        ])
        self.assertEqual(self.protocol.pending, [])

    def test_several_lines(self):
        self.protocol.dataReceived(b"A'\r\n!rules\n")
        self.assertEqual(self.output(),
                         ["A | Result", "0 | 1", "1 | 0"] +
                         list(truth_table.RULES))

    def test_invalid_line(self):
        self.protocol.dataReceived(b"A#B\n")
        self.assertEqual(self.output()[:2],
                         ["Invalid Characters: #", "Please check the format."])

    def test_blank_line_ignored(self):
        self.protocol.dataReceived(b"   \n")
        self.assertEqual(self.transport.value(), b"")

    def test_pending_until_sent(self):
        registry = PluginRegistry(self.clock, {})
        registry.load_plugins([
            {"name": "truth", "module": "plugins.truth_plugin",
             "config": {"line_delay": 1}},
        ])
        protocol = truthbot.ConsoleProtocol(registry)
        protocol.makeConnection(StringTransport())
        protocol.dataReceived(b"A\n")
        self.assertEqual(len(protocol.pending), 1)
        self.clock.pump([1, 1])
        self.assertEqual(protocol.pending, [])


class TruthBotTests(unittest.TestCase):

    def write_config(self, config):
        filename = self.mktemp()
        with open(filename, "w") as f:
            json.dump(config, f)
        return filename

    def test_config(self):
        config = {"core": {"log_file": "truthbot.log", "nickname": "tt"},
                  "plugins": []}
        bot = truthbot.TruthBot(task.Clock(), self.write_config(config))
        self.assertEqual(bot.core_config["log_file"], "truthbot.log")
        self.assertEqual(bot.nickname, "tt")
        self.assertEqual(bot.plugin_configs, [])
        self.assertEqual(bot.registry.config, config)

    def test_defaults(self):
        bot = truthbot.TruthBot(task.Clock(),
                                self.write_config({"core": {}}))
        self.assertEqual(bot.nickname, "truthbot")
        self.assertEqual(bot.plugin_configs, truthbot.DEFAULT_PLUGINS)

    def test_missing_core(self):
        bot = truthbot.TruthBot(task.Clock(), self.write_config({}))
        self.assertRaises(Exception, getattr, bot, "core_config")
