import logging
from urllib.parse import unquote, urlparse

LOG = logging.getLogger(__name__)

DEFAULT_JOB_NAME = "__default__"
DEFAULT_PREFIX = "bull"
DEFAULT_PORT = 6379


class ConfigError(Exception):
    pass


def redisOptsFromUrl(url):
    """
    Connection options for a "redis://[user[:password]@]host[:port][/db]"
    URL.
    """
    parsed = urlparse(url)
    if not parsed.hostname:
        raise ConfigError("Invalid connection URL {!r}: no host".format(url))
    try:
        port = parsed.port or DEFAULT_PORT
    except ValueError:
        raise ConfigError(
            "Invalid connection URL {!r}: bad port".format(url)) from None
    dbName = parsed.path.lstrip("/")
    if dbName and not dbName.isdigit():
        raise ConfigError(
            "Invalid connection URL {!r}: bad database {!r}".format(
                url, dbName))
    opts = {
        "host": parsed.hostname,
        "port": port,
        "db": int(dbName) if dbName else 0,
    }
    if parsed.username:
        opts["username"] = unquote(parsed.username)
    if parsed.password is not None:
        opts["password"] = unquote(parsed.password)
    return opts


class QueueConfig(object):
    """
    Normalized legacy queue options.

    Accepts the legacy constructor arguments: an option dict, or a
    connection URL plus an optional option dict whose "redis" entries
    override the ones parsed from the URL. The caller's dicts are never
    modified.
    """
    validOptions = {
        'redis', 'createClient', 'prefix', 'settings', 'limiter',
        'defaultJobOptions',
    }

    def __init__(self, urlOrOpts=None, opts=None):
        if isinstance(urlOrOpts, str):
            source = dict(opts or {})
            redis = redisOptsFromUrl(urlOrOpts)
            redis.update(source.get('redis') or {})
            source['redis'] = redis
        else:
            source = dict(urlOrOpts or {})
            if opts:
                source.update(opts)

        unknown = set(source) - self.validOptions
        if unknown:
            LOG.warning("ignoring unknown queue options: %s",
                        ", ".join(sorted(unknown)))

        redis = dict(source.get('redis') or {})
        keyPrefix = redis.pop('keyPrefix', None)
        self._redis = redis
        self._prefix = keyPrefix or source.get('prefix') or DEFAULT_PREFIX
        self._createClient = source.get('createClient')
        self._settings = source.get('settings')
        self._limiter = source.get('limiter')
        self._defaultJobOptions = source.get('defaultJobOptions')

    @property
    def redis(self):
        return dict(self._redis)

    @property
    def prefix(self):
        return self._prefix

    @property
    def createClient(self):
        return self._createClient

    @property
    def settings(self):
        return self._settings

    @property
    def limiter(self):
        return self._limiter

    @property
    def defaultJobOptions(self):
        return self._defaultJobOptions

    def asOptions(self):
        """The normalized options as a legacy option dict."""
        opts = {'redis': self.redis, 'prefix': self.prefix}
        for key, value in (('createClient', self._createClient),
                           ('settings', self._settings),
                           ('limiter', self._limiter),
                           ('defaultJobOptions', self._defaultJobOptions)):
            if value is not None:
                opts[key] = value
        return opts
