import json
from os import environ
from twisted.internet import defer, stdio
from twisted.protocols import basic
from twisted.logger import textFileLogObserver, globalLogPublisher, Logger
from plugin import PluginRegistry

log = Logger()

CONSOLE_USER = "console!console@localhost"

DEFAULT_PLUGINS = [
    {"name": "truth", "module": "plugins.truth_plugin",
     "config": {"line_delay": 0}},
]


class ConsoleProtocol(basic.LineReceiver):
    delimiter = b"\n"
    channel = "#console"

    def __init__(self, registry, nickname="truthbot"):
        self.registry = registry
        self.nickname = nickname
        self.pending = []

    def connectionMade(self):
        log.info("Console connected")

    def lineReceived(self, line):
        text = line.decode("utf-8", "ignore").strip()
        if not text:
            return
        if not text.startswith("!"):
            text = "!truth " + text
        d = self.registry.dispatch("privmsg", self, CONSOLE_USER,
                                   self.channel, text)
        self.pending.append(d)
        d.addBoth(self._finished, d)

    def _finished(self, result, d):
        self.pending.remove(d)
        return result

    def msg(self, target, text):
        self.sendLine(text.encode("utf-8"))

    def connectionLost(self, reason):
        log.info("Console closed, stopping once replies are sent")
        d = defer.gatherResults(list(self.pending))
        d.addBoth(lambda _: self.registry.reactor.stop())


class TruthBot(object):

    def __init__(self, reactor, config_filename):
        self._reactor = reactor
        self._config_filename = config_filename
        with open(config_filename) as f:
            self.config = json.load(f)
        self.registry = PluginRegistry(self._reactor, self.config)

    def start_logging(self):
        f = open(self.core_config["log_file"], "a")
        globalLogPublisher.addObserver(textFileLogObserver(f))

    def run(self):
        log.info(f"Loading plugins from {self._config_filename}")
        self.registry.load_plugins(self.plugin_configs)
        return stdio.StandardIO(ConsoleProtocol(self.registry, self.nickname),
                                reactor=self._reactor)

    @property
    def core_config(self):
        if 'core' in self.config:
            return self.config['core']
        raise Exception("Missing core section from config")

    @property
    def plugin_configs(self):
        return self.config.get('plugins', DEFAULT_PLUGINS)

    @property
    def nickname(self):
        return self.core_config.get('nickname', 'truthbot')


def main():
    from twisted.internet import reactor
    truthbot = TruthBot(reactor, environ.get("CONFIG", "config.json"))
    truthbot.start_logging()
    reactor.callWhenRunning(truthbot.run)
    reactor.run()

if __name__ == '__main__':
    main()
