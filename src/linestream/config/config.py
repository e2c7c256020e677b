import logging
import os
import platform

from configobj import ConfigObj, ConfigObjError, Section, flatten_errors
from validate import Validator

from linestream.support.retry_strategy import BackoffRetryStrategy, FixedRetryStrategy

logger = logging.getLogger(__name__)

# The default extension for configuration files
config_extension = '.cfg'

# the name of the configuration shipped with this package
config_name = 'linestream'


def config_flavor(name, flavor=None):
    configname = name if not flavor else name + '.' + flavor
    return configname


def config_filename(name, directory=None):
    """
    Determines the location of a config file in the given directory.
    """
    config_file = os.path.join(directory, name + config_extension)
    return config_file


def load_config_file_base(file, must_exist=True):
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
    :return: The ConfigObj instance for the file.
    """
    try:
        return ConfigObj(file, interpolation='Template', file_error=must_exist) \
            if must_exist or os.path.exists(file) else ConfigObj()
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def load_config_spec(file):
    """
    Loads a validation schema. Schema values are check functions, so they are not split into lists.
    """
    return ConfigObj(file, list_values=False, _inspec=True, file_error=True)


def config_flavor_file(name, directory, subpart=None) -> ConfigObj:
    """
    Loads a specialization of a config file. The configuration file is expected to be named
    after the base, followed by a period and then the specialization, if the specialization is given,
    otherwise just the base name.
    :param name:    The name of the base configuration
    :param subpart: The name of the specialization.
    :return: The ConfigObj for the configuration file.
    """
    configname = config_flavor(name, subpart)
    file = config_filename(configname, directory)
    config = load_config_file_base(file, False)
    return config


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    if name == 'darwin':
        name = 'osx'
    return name


def os_name():
    return map_os_name(platform.system())


def load_config(name, directory, user_file=None):
    """
        Loads all the configuration files that relate to the given name.
        Configurations are merged in this order, later files overriding earlier ones:
        - the default specialization
        - the platform specialization
        - the user override (~/<name>.cfg unless user_file is given)
        - the base configuration
        The merged configuration is validated against the schema specialization
        and missing values take the schema defaults.
    :param directory: the location of the configuration files
    :return: the validated ConfigObj
    """
    local_config = config_flavor_file(name, directory)
    default_config = config_flavor_file(name, directory, 'default')
    platform_config = config_flavor_file(name, directory, os_name())
    user_config = load_config_file_base(user_file or os.path.expanduser(
        '~/' + name + config_extension), must_exist=user_file is not None)
    config = ConfigObj()
    config.merge(default_config)
    config.merge(platform_config)
    config.merge(user_config)
    config.merge(local_config)

    config.configspec = load_config_spec(config_filename(config_flavor(name, 'schema'), directory))
    result = config.validate(Validator(), preserve_errors=True)
    if result is not True:
        errors = ["%s: %s" % ('.'.join(sections + [key or '']), error or 'missing')
                  for sections, key, error in flatten_errors(config, result)]
        raise ConfigObjError("the config file %s failed validation %s" % (name, ', '.join(errors)))
    return config


def fetch_conf_path(conf: Section, path):
    """
    Retrieves the named configuration section
    :param conf:        The root configuration
    :param path:        An iterable that lists the names of the sections to resolve
    :return: The configuration object identified by the path, or None
    """
    for p in path:    # lookup specific section
        conf = conf.get(p, None)
        if conf is None:
            return
    return conf


def apply_conf_path(conf: Section, name_parts, target):
    """
    Applies a configuration path to a given target object
    :param conf:        The root configuration object
    :param name_parts:  The path of the configuration to apply
    :param target:      The target object that receives the configured values
    """
    conf = fetch_conf_path(conf, name_parts)
    if conf:
        apply_conf(conf, target)


def apply_conf(conf: Section, target):
    """
    Applies the attributes contained in a configuration object to a target object.
    It does this by iterating over the items in the configuration and setting any attributes with the same name.
    """
    for k, v in conf.items():
        if hasattr(target, k):
            setattr(target, k, v)


class ReaderSettings:
    """
    The tunable values of a reader, read from the [reader] section.

    A max_retry_period greater than retry_period selects exponential backoff between those bounds,
    otherwise retries happen at the fixed retry_period.
    """

    def __init__(self):
        self.retry_period = 1.0
        self.max_retry_period = 0.0
        self.backoff_factor = 2.0
        self.connect_timeout = 5.0
        self.max_record_size = 64 * 1024
        self.log_level = 'INFO'

    @classmethod
    def from_config(cls, conf: Section):
        settings = cls()
        apply_conf_path(conf, ['reader'], settings)
        return settings

    @classmethod
    def load(cls, user_file=None, directory=None):
        """ loads the settings from the configuration shipped with the package, overridden by user_file. """
        return cls.from_config(load_config(config_name, directory or os.path.dirname(__file__), user_file))

    def retry_strategy(self):
        if self.max_retry_period > self.retry_period:
            return BackoffRetryStrategy(self.retry_period, self.max_retry_period, self.backoff_factor)
        return FixedRetryStrategy(self.retry_period)

    def __repr__(self):
        return 'ReaderSettings(%s)' % ', '.join('%s=%r' % kv for kv in sorted(self.__dict__.items()))
